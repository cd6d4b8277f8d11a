"""
dronestream Configuration
=========================

This module handles configuration loading for the video converter.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    DRONESTREAM_FFMPEG            -> decoder.executable
    DRONESTREAM_HWACCEL           -> decoder.hwaccel ("none" disables)
    DRONESTREAM_FRAME_WIDTH       -> frame.width
    DRONESTREAM_FRAME_HEIGHT      -> frame.height
    DRONESTREAM_CAPTURE_RAW       -> capture.enabled
    DRONESTREAM_CAPTURE_DIR       -> capture.directory
    DRONESTREAM_CHANNEL_SIZE      -> channel.maxsize
    DRONESTREAM_READ_ERROR_POLICY -> reader.read_error_policy
    DRONESTREAM_LOG_LEVEL         -> logging.level

Example:
    from dronestream.config import settings

    print(settings.frame.frame_size)
    print(settings.decoder.executable)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from dronestream.video.frame import FrameGeometry


logger = logging.getLogger(__name__)


_TRUE_VALUES = {"1", "true", "yes", "on"}


# =============================================================================
# Configuration Models
# =============================================================================

class DecoderConfig(BaseModel):
    """External transcoder configuration."""

    executable: str = Field(default="ffmpeg", description="Transcoder binary")
    pixel_format: str = Field(
        default="bgr24",
        description="Raw output pixel format (must match frame.bytes_per_pixel)",
    )
    hwaccel: Optional[str] = Field(
        default="auto",
        description="ffmpeg -hwaccel method, null to disable",
    )
    hwaccel_device: Optional[str] = Field(
        default="opencl",
        description="ffmpeg -hwaccel_device, null to omit",
    )
    loglevel: Optional[str] = Field(
        default=None,
        description="ffmpeg -loglevel, null to keep ffmpeg's default",
    )
    stop_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Time allowed for the transcoder to exit on close",
    )


class CaptureConfig(BaseModel):
    """Raw stream capture configuration."""

    enabled: bool = Field(default=False, description="Record all written bytes")
    directory: str = Field(default="fixtures", description="Capture directory")
    filename: str = Field(default="video-stream.dat", description="Capture file name")


class ChannelConfig(BaseModel):
    """Frame channel configuration."""

    maxsize: int = Field(
        default=1,
        ge=1,
        description="Frames held before the reader loop blocks",
    )
    drop_oldest: bool = Field(
        default=False,
        description="Evict the oldest frame instead of blocking the reader loop",
    )


class ReaderConfig(BaseModel):
    """Frame reader loop configuration."""

    read_error_policy: str = Field(
        default="publish",
        pattern="^(publish|skip)$",
        description="Frames whose read failed: 'publish' (degraded) or 'skip'",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for dronestream.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    frame: FrameGeometry = Field(default_factory=FrameGeometry)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Decoder settings
    if env_ffmpeg := os.environ.get("DRONESTREAM_FFMPEG"):
        config_data.setdefault("decoder", {})["executable"] = env_ffmpeg
    if env_hwaccel := os.environ.get("DRONESTREAM_HWACCEL"):
        config_data.setdefault("decoder", {})["hwaccel"] = (
            None if env_hwaccel.lower() == "none" else env_hwaccel
        )

    # Frame geometry
    if env_width := os.environ.get("DRONESTREAM_FRAME_WIDTH"):
        config_data.setdefault("frame", {})["width"] = int(env_width)
    if env_height := os.environ.get("DRONESTREAM_FRAME_HEIGHT"):
        config_data.setdefault("frame", {})["height"] = int(env_height)

    # Capture settings
    if env_capture := os.environ.get("DRONESTREAM_CAPTURE_RAW"):
        config_data.setdefault("capture", {})["enabled"] = env_capture.lower() in _TRUE_VALUES
    if env_dir := os.environ.get("DRONESTREAM_CAPTURE_DIR"):
        config_data.setdefault("capture", {})["directory"] = env_dir

    # Channel and reader
    if env_size := os.environ.get("DRONESTREAM_CHANNEL_SIZE"):
        config_data.setdefault("channel", {})["maxsize"] = int(env_size)
    if env_policy := os.environ.get("DRONESTREAM_READ_ERROR_POLICY"):
        config_data.setdefault("reader", {})["read_error_policy"] = env_policy.lower()

    # Logging settings
    if env_log := os.environ.get("DRONESTREAM_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()

"""
Configuration Tests
===================
"""

import pytest
from pydantic import ValidationError

from dronestream.config import Settings, load_config


ENV_VARS = [
    "DRONESTREAM_FFMPEG",
    "DRONESTREAM_HWACCEL",
    "DRONESTREAM_FRAME_WIDTH",
    "DRONESTREAM_FRAME_HEIGHT",
    "DRONESTREAM_CAPTURE_RAW",
    "DRONESTREAM_CAPTURE_DIR",
    "DRONESTREAM_CHANNEL_SIZE",
    "DRONESTREAM_READ_ERROR_POLICY",
    "DRONESTREAM_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for defaults and validation."""

    def test_defaults(self):
        settings = Settings()
        assert settings.decoder.executable == "ffmpeg"
        assert settings.decoder.pixel_format == "bgr24"
        assert settings.frame.frame_size == 2_073_600
        assert settings.capture.enabled is False
        assert settings.capture.directory == "fixtures"
        assert settings.capture.filename == "video-stream.dat"
        assert settings.channel.maxsize == 1
        assert settings.reader.read_error_policy == "publish"

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"channel": {"maxsize": 0}})
        with pytest.raises(ValidationError):
            Settings.model_validate({"reader": {"read_error_policy": "retry"}})


class TestLoadConfig:
    """Tests for YAML and environment precedence."""

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "frame:\n"
            "  width: 640\n"
            "  height: 480\n"
            "capture:\n"
            "  enabled: true\n"
        )

        settings = load_config(str(path))
        assert settings.frame.frame_size == 640 * 480 * 3
        assert settings.capture.enabled is True

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("frame:\n  width: 640\ndecoder:\n  executable: ffmpeg\n")

        monkeypatch.setenv("DRONESTREAM_FRAME_WIDTH", "1280")
        monkeypatch.setenv("DRONESTREAM_FFMPEG", "/usr/local/bin/ffmpeg")
        monkeypatch.setenv("DRONESTREAM_HWACCEL", "none")
        monkeypatch.setenv("DRONESTREAM_CAPTURE_RAW", "yes")
        monkeypatch.setenv("DRONESTREAM_READ_ERROR_POLICY", "SKIP")

        settings = load_config(str(path))
        assert settings.frame.width == 1280
        assert settings.decoder.executable == "/usr/local/bin/ffmpeg"
        assert settings.decoder.hwaccel is None
        assert settings.capture.enabled is True
        assert settings.reader.read_error_policy == "skip"

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "absent.yaml"))
        assert settings == Settings()

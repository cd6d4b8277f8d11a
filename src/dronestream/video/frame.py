"""
Frame Data Model
=================

Fixed-size decoded frame representation.

A frame is one image's worth of raw bytes sliced from the transcoder's
continuous rawvideo output. The pixel layout is fixed by the transcoder
command line (8-bit, interleaved, e.g. bgr24).

Design Rules:
    - Every published frame holds exactly FrameGeometry.frame_size bytes
    - Frames are immutable once published
    - Does NOT validate pixel content
"""

from dataclasses import dataclass

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_WIDTH = 960
DEFAULT_HEIGHT = 720
DEFAULT_BYTES_PER_PIXEL = 3


class FrameGeometry(BaseModel):
    """Resolution and pixel size of the decoded stream."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(default=DEFAULT_WIDTH, gt=0, description="Frame width in pixels")
    height: int = Field(default=DEFAULT_HEIGHT, gt=0, description="Frame height in pixels")
    bytes_per_pixel: int = Field(
        default=DEFAULT_BYTES_PER_PIXEL,
        gt=0,
        description="Bytes per pixel of the raw output format",
    )

    @property
    def frame_size(self) -> int:
        """Number of bytes in one frame."""
        return self.width * self.height * self.bytes_per_pixel

    @property
    def shape(self) -> tuple:
        """Array shape (height, width, channels)."""
        return (self.height, self.width, self.bytes_per_pixel)

    @property
    def resolution(self) -> str:
        """Resolution as WIDTHxHEIGHT, the form ffmpeg's -s expects."""
        return f"{self.width}x{self.height}"


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One decoded frame published by the reader loop.

    Attributes:
        index: Position of the frame in the stream, starting at 0
        data: Raw pixel bytes, exactly frame_size long
        valid: False if the read backing this frame failed; data is then
            partially or entirely zero-filled
    """

    index: int
    data: bytes
    valid: bool = True

    def __len__(self) -> int:
        return len(self.data)

    def to_array(self, geometry: FrameGeometry) -> np.ndarray:
        """
        View the frame as an image array.

        Args:
            geometry: Geometry the frame was read with

        Returns:
            Read-only uint8 array shaped (height, width, bytes_per_pixel)

        Raises:
            ValueError: If the frame length does not match the geometry
        """
        if len(self.data) != geometry.frame_size:
            raise ValueError(
                f"Frame {self.index} has {len(self.data)} bytes, "
                f"expected {geometry.frame_size} for {geometry.resolution}"
            )
        return np.frombuffer(self.data, dtype=np.uint8).reshape(geometry.shape)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel data."""
        return (
            f"Frame(index={self.index}, "
            f"size={len(self.data)}, "
            f"valid={self.valid})"
        )

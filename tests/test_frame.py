"""
Frame Model Tests
=================
"""

import dataclasses

import numpy as np
import pytest
from pydantic import ValidationError

from dronestream.video.frame import Frame, FrameGeometry


class TestFrameGeometry:
    """Tests for frame size arithmetic."""

    def test_default_frame_size(self):
        """Default geometry is 960x720 bgr24."""
        geometry = FrameGeometry()
        assert geometry.frame_size == 960 * 720 * 3 == 2_073_600
        assert geometry.resolution == "960x720"
        assert geometry.shape == (720, 960, 3)

    @pytest.mark.parametrize("width,height,bpp", [(640, 480, 3), (1280, 720, 4), (2, 2, 1)])
    def test_frame_size_is_product(self, width, height, bpp):
        """Frame size is width * height * bytes_per_pixel."""
        geometry = FrameGeometry(width=width, height=height, bytes_per_pixel=bpp)
        assert geometry.frame_size == width * height * bpp

    def test_rejects_non_positive(self):
        """Zero or negative dimensions are invalid."""
        with pytest.raises(ValidationError):
            FrameGeometry(width=0)
        with pytest.raises(ValidationError):
            FrameGeometry(bytes_per_pixel=-3)

    def test_is_frozen(self):
        geometry = FrameGeometry()
        with pytest.raises(ValidationError):
            geometry.width = 10


class TestFrame:
    """Tests for the published frame value."""

    def test_to_array_shape(self, small_geometry):
        """Frames view as (height, width, channels) uint8 arrays."""
        data = bytes(range(small_geometry.frame_size))
        frame = Frame(index=0, data=data)

        image = frame.to_array(small_geometry)
        assert image.shape == (6, 8, 3)
        assert image.dtype == np.uint8
        assert image[0, 1, 0] == 3

    def test_to_array_rejects_wrong_size(self, small_geometry):
        frame = Frame(index=4, data=b"\x00" * 10)
        with pytest.raises(ValueError, match="Frame 4"):
            frame.to_array(small_geometry)

    def test_array_is_read_only(self, small_geometry):
        frame = Frame(index=0, data=b"\x00" * small_geometry.frame_size)
        image = frame.to_array(small_geometry)
        with pytest.raises(ValueError):
            image[0, 0, 0] = 1

    def test_frame_is_immutable(self):
        frame = Frame(index=0, data=b"abc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            frame.index = 1

    def test_len_and_repr(self):
        """repr does not dump pixel data."""
        frame = Frame(index=7, data=b"\xff" * 100, valid=False)
        assert len(frame) == 100
        assert repr(frame) == "Frame(index=7, size=100, valid=False)"

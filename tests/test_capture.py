"""
Raw Capture Tests
=================
"""

import numpy as np
import pytest

from dronestream.video.capture import CaptureSink, load_capture


class TestCaptureSink:
    """Tests for in-memory capture and flush."""

    def test_keeps_write_order(self):
        sink = CaptureSink()
        for chunk in (b"\x00\x00\x00\x01", b"\x67", b"", b"\x68\xce"):
            sink.write(chunk)

        assert sink.getvalue() == b"\x00\x00\x00\x01\x67\x68\xce"
        assert len(sink) == 7

    def test_flush_round_trip(self, tmp_path):
        """All written bytes are recoverable from the flushed file."""
        directory = tmp_path / "nested" / "fixtures"
        sink = CaptureSink(directory=directory, filename="stream.dat")
        chunks = [bytes(range(256)), b"\x00" * 1000, b"tail"]
        for chunk in chunks:
            sink.write(chunk)

        path = sink.flush()

        assert path == directory / "stream.dat"
        assert sink.flushed
        assert load_capture(path) == b"".join(chunks)

    def test_flush_truncates_previous_capture(self, tmp_path):
        path = tmp_path / "video-stream.dat"
        path.write_bytes(b"x" * 4096)

        sink = CaptureSink(directory=tmp_path)
        sink.write(b"short")
        sink.flush()

        assert load_capture(path) == b"short"

    def test_empty_capture(self, tmp_path):
        sink = CaptureSink(directory=tmp_path)
        assert load_capture(sink.flush()) == b""

    def test_flush_failure_raises_oserror(self, tmp_path):
        """A directory path occupied by a file cannot be created."""
        blocker = tmp_path / "fixtures"
        blocker.write_text("not a directory")

        sink = CaptureSink(directory=blocker)
        sink.write(b"data")
        with pytest.raises(OSError):
            sink.flush()
        assert not sink.flushed


class TestLoadCapture:
    def test_rejects_non_capture_arrays(self, tmp_path):
        path = tmp_path / "floats.dat"
        with open(path, "wb") as f:
            np.save(f, np.zeros((2, 2), dtype=np.float32))

        with pytest.raises(ValueError, match="Not a raw capture"):
            load_capture(path)

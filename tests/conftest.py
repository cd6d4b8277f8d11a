"""
Test Configuration
==================

Pytest fixtures and test doubles for dronestream.
"""

import io
import shutil
from typing import List, Optional

import pytest

from dronestream.video.frame import FrameGeometry


requires_cat = pytest.mark.skipif(
    shutil.which("cat") is None,
    reason="needs the 'cat' filter as a stand-in transcoder",
)


class RecordingWriter:
    """Write end that records every chunk it receives."""

    def __init__(self, close_error: Optional[Exception] = None) -> None:
        self.chunks: List[bytes] = []
        self.closed = False
        self._close_error = close_error

    def write(self, data: bytes) -> int:
        self.chunks.append(bytes(data))
        return len(data)

    def getvalue(self) -> bytes:
        return b"".join(self.chunks)

    def close(self) -> None:
        self.closed = True
        if self._close_error is not None:
            raise self._close_error


class ScriptedReader(io.BytesIO):
    """Read end serving fixed bytes, optionally failing on close."""

    def __init__(self, data: bytes = b"", close_error: Optional[Exception] = None) -> None:
        super().__init__(data)
        self._close_error = close_error

    def close(self) -> None:
        super().close()
        if self._close_error is not None:
            raise self._close_error


class FakeDecoder:
    """In-memory decoder: stdin records writes, stdout replays fixed output."""

    def __init__(
        self,
        output: bytes = b"",
        writer_close_error: Optional[Exception] = None,
        reader_close_error: Optional[Exception] = None,
    ) -> None:
        self.stdin = RecordingWriter(writer_close_error)
        self.stdout = ScriptedReader(output, reader_close_error)
        self.started = False
        self.stopped = False

    @property
    def running(self) -> bool:
        return self.started and not self.stopped

    def start(self) -> None:
        self.started = True

    def stop(self, timeout: float) -> Optional[int]:
        self.stopped = True
        return 0


class FailingCapture:
    """Capture sink whose writes always fail."""

    path = "unwritable"

    def write(self, data: bytes) -> int:
        raise OSError("capture device full")

    def flush(self):
        raise OSError("capture device full")


@pytest.fixture
def small_geometry():
    """Tiny frames so several fit in an OS pipe buffer."""
    return FrameGeometry(width=8, height=6, bytes_per_pixel=3)


@pytest.fixture
def fake_decoder():
    """Provide a FakeDecoder with no output."""
    return FakeDecoder()


def frame_payload(index: int, geometry: FrameGeometry) -> bytes:
    """A frame whose every byte is its index."""
    return bytes([index % 256]) * geometry.frame_size

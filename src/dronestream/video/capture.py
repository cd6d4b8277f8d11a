"""
Raw Capture
===========

Verbatim recorder of every compressed byte written to a converter.

Captures are used as test fixtures and for offline debugging of a
downlink: replaying a capture through the transcoder reproduces the
exact frame stream the live session produced.

Design Rules:
    - Append-only, in memory, in write order
    - Growth is unbounded; intended for bounded-duration sessions
    - Written to disk once, when the owning converter closes
    - Stored with numpy's .npy format so the blob length is self-described
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np


logger = logging.getLogger(__name__)


DEFAULT_CAPTURE_DIR = "fixtures"
DEFAULT_CAPTURE_FILE = "video-stream.dat"


class CaptureSink:
    """
    In-memory accumulator for raw stream bytes.

    Attributes:
        path: File the capture is flushed to
        flushed: Whether flush() has completed

    Example:
        sink = CaptureSink()
        sink.write(packet)
        ...
        sink.flush()  # fixtures/video-stream.dat
    """

    def __init__(
        self,
        directory: Union[str, Path] = DEFAULT_CAPTURE_DIR,
        filename: str = DEFAULT_CAPTURE_FILE,
    ) -> None:
        self.directory = Path(directory)
        self.filename = filename
        self._buffer = bytearray()
        self._flushed: bool = False

    @property
    def path(self) -> Path:
        return self.directory / self.filename

    @property
    def flushed(self) -> bool:
        return self._flushed

    def __len__(self) -> int:
        return len(self._buffer)

    def write(self, data: bytes) -> int:
        """Append data, returning the number of bytes retained."""
        self._buffer += data
        return len(data)

    def getvalue(self) -> bytes:
        """Copy of everything captured so far."""
        return bytes(self._buffer)

    def flush(self) -> Path:
        """
        Write the capture to disk, replacing any previous file.

        Returns:
            Path of the written capture

        Raises:
            OSError: If the directory or file cannot be written
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        blob = np.frombuffer(bytes(self._buffer), dtype=np.uint8)
        with open(self.path, "wb") as f:
            np.save(f, blob, allow_pickle=False)

        self._flushed = True
        logger.info(f"Wrote {len(self._buffer)} captured bytes to {self.path}")
        return self.path


def load_capture(path: Union[str, Path]) -> bytes:
    """
    Read back a capture written by CaptureSink.flush().

    Args:
        path: Capture file path

    Returns:
        The captured bytes, exactly as written to the converter

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a capture
    """
    with open(path, "rb") as f:
        blob = np.load(f, allow_pickle=False)

    if blob.dtype != np.uint8 or blob.ndim != 1:
        raise ValueError(
            f"Not a raw capture: dtype={blob.dtype}, shape={blob.shape}"
        )
    return blob.tobytes()

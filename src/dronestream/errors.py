"""
Error Taxonomy
==============

Exceptions raised by the converter, the frame reader loop and the
frame channel.

Propagation:
    - Setup, start and write errors are raised synchronously to the caller
    - Read errors inside the reader loop are logged, never raised to the
      caller of start(); they surface as degraded frames
    - Close errors are raised after best-effort teardown has completed
"""

from typing import Optional


class DroneStreamError(Exception):
    """Base class for all dronestream errors."""
    pass


class ConverterError(DroneStreamError):
    """Raised for converter lifecycle and I/O failures."""
    pass


class PipeSetupError(ConverterError):
    """Raised when the transcoder pipes cannot be allocated."""
    pass


class ProcessStartError(ConverterError):
    """Raised when the transcoder process fails to launch."""
    pass


class CaptureWriteError(ConverterError):
    """Raised when the tee to the capture sink fails."""
    pass


class CaptureFlushError(ConverterError):
    """Raised from close() when the capture file could not be written."""
    pass


class ConverterClosedError(ConverterError):
    """Raised when a converter is used after close()."""
    pass


class CloseError(ConverterError):
    """
    Raised when closing one or both transcoder pipes failed.
    
    Attributes:
        writer_failed: Closing the input (stdin) pipe failed
        reader_failed: Closing the output (stdout) pipe failed
    """
    
    def __init__(
        self,
        writer_error: Optional[BaseException] = None,
        reader_error: Optional[BaseException] = None,
    ) -> None:
        self.writer_error = writer_error
        self.reader_error = reader_error
        
        if writer_error is not None and reader_error is not None:
            message = "failed to close writer and reader"
        elif writer_error is not None:
            message = "failed to close writer"
        else:
            message = "failed to close reader"
        super().__init__(message)
    
    @property
    def writer_failed(self) -> bool:
        return self.writer_error is not None
    
    @property
    def reader_failed(self) -> bool:
        return self.reader_error is not None


class ReadError(DroneStreamError):
    """Raised when a frame could not be read from the transcoder."""
    pass


class ShortReadError(ReadError):
    """
    Raised when the transcoder output ended before a full frame arrived.
    
    Attributes:
        received: Bytes read before EOF
        expected: Bytes requested
    """
    
    def __init__(self, received: int, expected: int) -> None:
        self.received = received
        self.expected = expected
        super().__init__(
            f"unexpected EOF: got {received} of {expected} bytes"
        )


class ChannelClosedError(DroneStreamError):
    """Raised when sending to, or receiving from, a closed channel."""
    pass

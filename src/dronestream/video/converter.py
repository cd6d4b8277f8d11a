"""
Converter
=========

Compressed video in, fixed-size raw frames out.

The converter presents the external transcoder as two byte streams: a
sink for compressed input (write) and a source of decoded output
(readinto/read). start() launches the transcoder and a background reader
loop that publishes frames on a FrameChannel.

Data flow:
    producer -> Converter.write -> decoder stdin -> ffmpeg
        -> decoder stdout -> reader loop -> FrameChannel -> consumer

Design Rules:
    - One writer and one reader loop per converter; no internal locking
    - Writes are teed to the capture sink first; a capture failure
      aborts the write before anything reaches the transcoder
    - Stopping the reader loop does NOT close the pipes; call close()
    - close() is not idempotent; a second call raises

Example:
    stop = asyncio.Event()
    converter = Converter.create(capture_raw=True)
    frames = converter.start(stop)

    # elsewhere: converter.write(packet) for each downlink packet

    async for frame in frames:
        show(frame)

    stop.set()
    converter.close()
"""

import asyncio
import logging
from typing import Optional

from dronestream.errors import (
    CaptureFlushError,
    CaptureWriteError,
    CloseError,
    ConverterClosedError,
    ConverterError,
)
from dronestream.video.capture import CaptureSink
from dronestream.video.channel import FrameChannel
from dronestream.video.decoder import Decoder, SubprocessDecoder, build_ffmpeg_command
from dronestream.video.frame import FrameGeometry
from dronestream.video.reader import ReadErrorPolicy, pipe_to_channel


logger = logging.getLogger(__name__)


class Converter:
    """
    Drives a Decoder and publishes its output as frames.

    Attributes:
        decoder: The transcoder capability (process and pipes)
        capture: Raw capture sink, or None if capture is disabled
        geometry: Frame geometry of the decoder output
        reader_task: The reader loop task, None until start()
    """

    def __init__(
        self,
        decoder: Decoder,
        capture: Optional[CaptureSink] = None,
        geometry: Optional[FrameGeometry] = None,
        channel_size: int = 1,
        drop_oldest: bool = False,
        read_error_policy: ReadErrorPolicy = ReadErrorPolicy.PUBLISH,
        stop_timeout: float = 2.0,
    ) -> None:
        """
        Initialize converter around an existing decoder.

        Args:
            decoder: Decoder whose pipes are already allocated
            capture: Optional sink receiving a copy of every write
            geometry: Output frame geometry (default 960x720x3)
            channel_size: Capacity of the frame channel
            drop_oldest: Evict old frames instead of blocking the reader
            read_error_policy: Publish or skip frames whose read failed
            stop_timeout: Seconds to wait for the decoder to exit on close
        """
        self.decoder = decoder
        self.capture = capture
        self.geometry = geometry or FrameGeometry()
        self.channel_size = channel_size
        self.drop_oldest = drop_oldest
        self.read_error_policy = ReadErrorPolicy(read_error_policy)
        self.stop_timeout = stop_timeout

        self.channel: Optional[FrameChannel] = None
        self.reader_task: Optional[asyncio.Task] = None
        self._closed: bool = False

    @classmethod
    def create(cls, capture_raw: Optional[bool] = None, settings=None) -> "Converter":
        """
        Create a converter backed by an ffmpeg subprocess.

        Args:
            capture_raw: Record all written bytes; None uses settings.capture.enabled
            settings: Settings to build from; None uses the loaded settings

        Returns:
            Converter with pipes allocated and the process not yet started

        Raises:
            PipeSetupError: If the pipes cannot be created
        """
        if settings is None:
            from dronestream.config import settings

        if capture_raw is None:
            capture_raw = settings.capture.enabled

        decoder_config = settings.decoder
        command = build_ffmpeg_command(
            settings.frame,
            executable=decoder_config.executable,
            pixel_format=decoder_config.pixel_format,
            hwaccel=decoder_config.hwaccel,
            hwaccel_device=decoder_config.hwaccel_device,
            loglevel=decoder_config.loglevel,
        )
        decoder = SubprocessDecoder(command)

        capture = None
        if capture_raw:
            capture = CaptureSink(
                directory=settings.capture.directory,
                filename=settings.capture.filename,
            )

        return cls(
            decoder,
            capture=capture,
            geometry=settings.frame,
            channel_size=settings.channel.maxsize,
            drop_oldest=settings.channel.drop_oldest,
            read_error_policy=settings.reader.read_error_policy,
            stop_timeout=decoder_config.stop_timeout_seconds,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self, stop: asyncio.Event) -> FrameChannel:
        """
        Launch the decoder and the reader loop.

        Must be called from a running event loop. Returns immediately.

        Args:
            stop: Setting this event ends the reader loop and closes the
                channel. It does not close the converter.

        Returns:
            Channel the decoded frames are published on

        Raises:
            ProcessStartError: If the decoder process cannot be launched
            ConverterError: If already started or closed
        """
        self._check_open()
        if self.reader_task is not None:
            raise ConverterError("converter already started")

        loop = asyncio.get_running_loop()
        self.decoder.start()

        self.channel = FrameChannel(maxsize=self.channel_size, drop_oldest=self.drop_oldest)
        self.reader_task = loop.create_task(
            pipe_to_channel(
                self,
                self.channel,
                stop,
                self.geometry,
                policy=self.read_error_policy,
            )
        )
        return self.channel

    def write(self, data: bytes) -> int:
        """
        Feed compressed bytes to the decoder.

        Args:
            data: Compressed stream bytes

        Returns:
            Bytes accepted by the decoder input pipe (may be partial)

        Raises:
            CaptureWriteError: If the capture tee failed; nothing was forwarded
            ConverterClosedError: If the converter is closed
            OSError: If the pipe write failed (e.g. BrokenPipeError)
        """
        self._check_open()
        if self.capture is not None:
            try:
                self.capture.write(data)
            except (OSError, ValueError, MemoryError) as e:
                raise CaptureWriteError(f"failed to capture {len(data)} bytes: {e}") from e

        return self.decoder.stdin.write(data)

    def readinto(self, buffer) -> int:
        """Read decoded bytes straight from the decoder output pipe."""
        self._check_open()
        return self.decoder.stdout.readinto(buffer)

    def read(self, size: int = -1) -> bytes:
        """
        Read up to size decoded bytes; no framing.

        After the reader loop is stopped, a read it abandoned may still
        take up to one frame of output, which this call will not see.
        """
        self._check_open()
        return self.decoder.stdout.read(size)

    def close(self) -> None:
        """
        Flush the capture, close both pipes and reap the decoder.

        Teardown always runs to completion before an error is raised.

        Raises:
            CloseError: If closing the writer, the reader, or both failed
            CaptureFlushError: If only the capture flush failed
            ConverterClosedError: If already closed
        """
        self._check_open()
        self._closed = True

        flush_error = None
        if self.capture is not None:
            try:
                self.capture.flush()
            except OSError as e:
                flush_error = e
                logger.error(f"Failed to write capture to {self.capture.path}: {e}")

        writer_error = _close_pipe(self.decoder.stdin, "writer")
        reader_error = _close_pipe(self.decoder.stdout, "reader")

        try:
            code = self.decoder.stop(self.stop_timeout)
            if code:
                logger.warning(f"Decoder exited with code {code}")
        except OSError as e:
            logger.error(f"Failed to stop decoder: {e}")

        if writer_error is not None or reader_error is not None:
            raise CloseError(writer_error, reader_error)
        if flush_error is not None:
            raise CaptureFlushError(f"failed to write capture: {flush_error}") from flush_error

        logger.info("Converter closed")

    def __enter__(self) -> "Converter":
        return self

    def __exit__(self, *args) -> None:
        if not self._closed:
            self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ConverterClosedError("converter is closed")


def _close_pipe(pipe, name: str) -> Optional[BaseException]:
    try:
        pipe.close()
    except OSError as e:
        logger.error(f"Failed to close {name}: {e}")
        return e
    return None

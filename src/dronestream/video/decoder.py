"""
Decoder Process
===============

External transcoder driven as a byte-stream filter.

The decoder reads compressed video on its stdin and writes fixed-format
rawvideo on its stdout. The only implementation spawns ffmpeg (or any
other filter command) and talks to it over two OS pipes; an in-process
decoding library could satisfy the same protocol.

Design Rules:
    - Pipes are allocated at construction, before the process exists,
      so input written early is buffered by the OS until start()
    - stdin/stdout are the only channels to the process; stderr is discarded
    - The decoder does NOT close its pipes; the converter owns teardown
"""

import logging
import os
import subprocess
from typing import BinaryIO, List, Optional, Protocol, Sequence

from dronestream.errors import PipeSetupError, ProcessStartError
from dronestream.video.frame import FrameGeometry


logger = logging.getLogger(__name__)


class Decoder(Protocol):
    """
    Capability that turns compressed bytes into raw frames.

    stdin receives compressed input, stdout yields raw frame bytes.
    """

    stdin: BinaryIO
    stdout: BinaryIO

    @property
    def running(self) -> bool:
        ...

    def start(self) -> None:
        ...

    def stop(self, timeout: float) -> Optional[int]:
        ...


def build_ffmpeg_command(
    geometry: FrameGeometry,
    executable: str = "ffmpeg",
    pixel_format: str = "bgr24",
    hwaccel: Optional[str] = "auto",
    hwaccel_device: Optional[str] = "opencl",
    loglevel: Optional[str] = None,
) -> List[str]:
    """
    Build the ffmpeg argument vector for stdin -> rawvideo stdout.

    Args:
        geometry: Output resolution
        executable: ffmpeg binary name or path
        pixel_format: Raw output pixel format (must match bytes_per_pixel)
        hwaccel: Hardware acceleration method, None to disable
        hwaccel_device: Hardware acceleration device, None to omit
        loglevel: ffmpeg -loglevel value, None to keep ffmpeg's default

    Returns:
        Command list suitable for subprocess
    """
    cmd = [executable]
    if loglevel:
        cmd += ["-loglevel", loglevel]
    if hwaccel:
        cmd += ["-hwaccel", hwaccel]
        if hwaccel_device:
            cmd += ["-hwaccel_device", hwaccel_device]
    cmd += [
        "-i", "pipe:0",
        "-pix_fmt", pixel_format,
        "-s", geometry.resolution,
        "-f", "rawvideo",
        "pipe:1",
    ]
    return cmd


class SubprocessDecoder:
    """
    Decoder backed by a child process wired to two OS pipes.

    Attributes:
        command: Argument vector of the child process
        stdin: Write end feeding the child's standard input
        stdout: Read end draining the child's standard output
        process: The Popen handle, None until start()

    Example:
        decoder = SubprocessDecoder(build_ffmpeg_command(FrameGeometry()))
        decoder.stdin.write(h264_bytes)
        decoder.start()
        raw = decoder.stdout.read(frame_size)
    """

    def __init__(
        self,
        command: Sequence[str],
        stderr: Optional[int] = subprocess.DEVNULL,
    ) -> None:
        """
        Allocate the pipes for a not-yet-started process.

        Args:
            command: Child argument vector
            stderr: Where the child's stderr goes (subprocess constant or fd)

        Raises:
            PipeSetupError: If either pipe cannot be created
        """
        self.command = list(command)
        self._stderr = stderr
        self.process: Optional[subprocess.Popen] = None

        try:
            in_read, in_write = os.pipe()
        except OSError as e:
            raise PipeSetupError(f"failed to create stdin pipe: {e}") from e
        try:
            out_read, out_write = os.pipe()
        except OSError as e:
            os.close(in_read)
            os.close(in_write)
            raise PipeSetupError(f"failed to create stdout pipe: {e}") from e

        # Child ends are handed to Popen and closed in the parent after spawn
        self._child_fds: List[int] = [in_read, out_write]
        self.stdin: BinaryIO = open(in_write, "wb", buffering=0)
        self.stdout: BinaryIO = open(out_read, "rb", buffering=0)

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    def start(self) -> None:
        """
        Launch the child process.

        Raises:
            ProcessStartError: If the process cannot be launched
        """
        if self.process is not None:
            raise ProcessStartError("decoder already started")

        in_read, out_write = self._child_fds
        try:
            self.process = subprocess.Popen(
                self.command,
                stdin=in_read,
                stdout=out_write,
                stderr=self._stderr,
            )
        except OSError as e:
            raise ProcessStartError(
                f"failed to start {self.command[0]!r}: {e}"
            ) from e

        self._close_child_fds()
        logger.info(f"Decoder started (pid={self.process.pid}): {' '.join(self.command)}")

    def stop(self, timeout: float = 2.0) -> Optional[int]:
        """
        Reap the child, terminating it if it does not exit in time.

        Args:
            timeout: Seconds to wait at each escalation step

        Returns:
            Exit code, or None if the process was never started
        """
        self._close_child_fds()
        if self.process is None:
            return None

        try:
            return self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Decoder pid={self.process.pid} did not exit, terminating")

        self.process.terminate()
        try:
            return self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"Decoder pid={self.process.pid} ignored SIGTERM, killing")

        self.process.kill()
        return self.process.wait()

    def _close_child_fds(self) -> None:
        while self._child_fds:
            fd = self._child_fds.pop()
            try:
                os.close(fd)
            except OSError as e:
                logger.warning(f"Failed to close child pipe fd {fd}: {e}")

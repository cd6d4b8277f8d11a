"""
Frame Reader Loop
=================

Background task slicing the transcoder's output into frames.

The loop is the only reader of the converter's output and the only
producer into its channel. Each iteration reads exactly one frame's worth
of bytes and publishes it.

Design Rules:
    - Frames are published in the order their bytes were produced
    - A failed read is logged and, by default, still published as a
      degraded frame (valid=False) to keep the channel live
    - Stopping is observed between frames and also while a read or send
      is pending; the pending operation is abandoned
    - An abandoned read keeps running in its worker thread until the source
      returns, and may consume up to one frame of output that is then
      discarded. Direct reads after stopping can therefore miss those bytes
    - The channel is closed exactly once, when the loop exits for any reason
"""

import asyncio
import enum
import logging
from typing import Awaitable, Protocol

from dronestream.errors import ConverterError, ReadError, ShortReadError
from dronestream.video.channel import FrameChannel
from dronestream.video.frame import Frame, FrameGeometry


logger = logging.getLogger(__name__)


class ReadErrorPolicy(str, enum.Enum):
    """What the loop does with a frame whose read failed."""

    PUBLISH = "publish"
    SKIP = "skip"


class FrameSource(Protocol):
    def readinto(self, buffer: bytearray) -> int:
        ...


def read_exactly(source: FrameSource, buffer: bytearray) -> int:
    """
    Fill buffer completely from source.

    Args:
        source: Object with a blocking readinto()
        buffer: Destination, filled from the start

    Returns:
        len(buffer)

    Raises:
        ShortReadError: If the source reached EOF before buffer was full
    """
    view = memoryview(buffer)
    total = 0
    while total < len(view):
        n = source.readinto(view[total:])
        if not n:
            raise ShortReadError(total, len(view))
        total += n
    return total


async def _unless_stopped(operation: Awaitable, stop: asyncio.Event) -> bool:
    """
    Await operation unless stop is set first.

    Returns:
        True if the operation finished, False if it was abandoned.
    """
    task = asyncio.ensure_future(operation)
    if stop.is_set():
        task.cancel()
        return False

    stopper = asyncio.ensure_future(stop.wait())
    try:
        await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        stopper.cancel()

    if task.done():
        return True
    task.cancel()
    return False


async def pipe_to_channel(
    source: FrameSource,
    channel: FrameChannel,
    stop: asyncio.Event,
    geometry: FrameGeometry,
    policy: ReadErrorPolicy = ReadErrorPolicy.PUBLISH,
) -> None:
    """
    Read frames from source and publish them until stop is set.

    Args:
        source: Converter (or any readinto() source) of raw frame bytes
        channel: Channel to publish into; closed when this returns
        stop: Event that ends the loop
        geometry: Frame geometry; sets the per-frame byte count
        policy: Whether frames whose read failed are published or skipped
    """
    frame_size = geometry.frame_size
    index = 0
    read_errors = 0

    logger.info(f"Frame reader started ({geometry.resolution}, {frame_size} bytes/frame)")
    try:
        while not stop.is_set():
            buf = bytearray(frame_size)
            read = asyncio.ensure_future(asyncio.to_thread(read_exactly, source, buf))
            if not await _unless_stopped(read, stop):
                break

            valid = True
            try:
                read.result()
            except (ReadError, ConverterError, OSError, ValueError) as e:
                valid = False
                read_errors += 1
                logger.error(f"failed reading into buffer: {e}")

            if not valid and policy == ReadErrorPolicy.SKIP:
                continue

            frame = Frame(index=index, data=bytes(buf), valid=valid)
            send = asyncio.ensure_future(channel.send(frame))
            if not await _unless_stopped(send, stop):
                break
            send.result()
            index += 1
    finally:
        channel.close()
        logger.info(
            f"Frame reader stopped after {index} frames "
            f"({read_errors} read errors)"
        )

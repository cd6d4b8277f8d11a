"""
Frame Channel
=============

Closable async conduit between the frame reader loop and its consumers.

This module provides the FrameChannel class, the only interface between
the converter's reader loop and downstream consumers (display, inference).

Design Rules:
    - Single producer (the reader loop), one or more consumers
    - Bounded: send() waits for room, giving natural backpressure
    - Optional drop-oldest policy for consumers that prefer fresh frames
    - Closed exactly once, by the producer; closure is terminal
    - Frames sent before close() are still delivered before closure is seen
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from dronestream.errors import ChannelClosedError
from dronestream.video.frame import Frame


logger = logging.getLogger(__name__)


class FrameChannel:
    """
    Async-safe bounded channel of frames.

    asyncio.Queue treats maxsize=0 as unbounded, so the tightest
    rendezvous available is a capacity of one, which is the default.

    Attributes:
        maxsize: Maximum number of frames held
        drop_oldest: Whether a full channel evicts its oldest frame
            instead of blocking the producer
        closed: Whether the producer has closed the channel

    Example:
        channel = FrameChannel()

        # Producer
        await channel.send(frame)
        channel.close()

        # Consumer
        async for frame in channel:
            process(frame)
    """

    def __init__(self, maxsize: int = 1, drop_oldest: bool = False) -> None:
        """
        Initialize frame channel.

        Args:
            maxsize: Maximum frames held. Must be >= 1.
            drop_oldest: Evict the oldest frame when full instead of waiting.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._drop_oldest = drop_oldest
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed: bool = False
        self._closed_event = asyncio.Event()
        self._dropped_count: int = 0
        self._total_sent: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum channel size."""
        return self._maxsize

    @property
    def drop_oldest(self) -> bool:
        return self._drop_oldest

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        """Current number of frames waiting in the channel."""
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Number of frames evicted under the drop-oldest policy."""
        return self._dropped_count

    @property
    def total_sent(self) -> int:
        """Total frames ever sent into the channel."""
        return self._total_sent

    async def send(self, frame: Frame) -> None:
        """
        Publish a frame, waiting for room unless drop_oldest is set.

        Args:
            frame: Frame to publish

        Raises:
            ChannelClosedError: If the channel was already closed
        """
        if self._closed:
            raise ChannelClosedError("send on closed channel")

        if self._drop_oldest:
            if self._queue.full():
                self._queue.get_nowait()
                self._dropped_count += 1
                logger.warning(
                    f"Channel full, dropped oldest frame. "
                    f"Total dropped: {self._dropped_count}"
                )
            self._queue.put_nowait(frame)
        else:
            await self._queue.put(frame)

        self._total_sent += 1

    async def receive(self) -> Frame:
        """
        Wait for the next frame.

        Returns:
            Next frame in publication order.

        Raises:
            ChannelClosedError: Once the channel is closed and drained
        """
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._closed:
                raise ChannelClosedError("channel closed")

            # Every waiting consumer wakes on close, however full the queue is
            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed_event.wait())
            try:
                await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                getter.cancel()
                raise
            finally:
                closer.cancel()

            if getter.done():
                return getter.result()
            getter.cancel()

    async def get(self, timeout: Optional[float] = None) -> Optional[Frame]:
        """
        Get next frame, or None on closure or timeout.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.
        """
        try:
            if timeout is not None:
                return await asyncio.wait_for(self.receive(), timeout=timeout)
            return await self.receive()
        except (ChannelClosedError, asyncio.TimeoutError):
            return None

    def get_nowait(self) -> Optional[Frame]:
        """
        Get next frame without waiting.

        Returns:
            Next frame if available, None if empty or closed.
        """
        if self.size == 0:
            return None
        return self._queue.get_nowait()

    def close(self) -> None:
        """
        Close the channel. Only the producer calls this.

        Frames already in the channel remain receivable; consumers see
        ChannelClosedError after the last of them.
        """
        if self._closed:
            return
        self._closed = True
        self._closed_event.set()
        logger.debug(f"Channel closed after {self._total_sent} frames")

    def __aiter__(self) -> AsyncIterator[Frame]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Frame]:
        while True:
            try:
                yield await self.receive()
            except ChannelClosedError:
                return

    def metrics(self) -> dict:
        """
        Get channel metrics for observability.

        Returns:
            Dict with size, maxsize, dropped_count, total_sent, closed
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "total_sent": self._total_sent,
            "closed": self._closed,
        }

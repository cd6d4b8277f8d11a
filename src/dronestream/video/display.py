"""
Frame Consumers
===============

Helpers that drain a FrameChannel.

Consumers must treat channel closure as the definitive end of the stream
and tolerate degraded frames (Frame.valid is False) delivered after a
transcoder read failure.
"""

import asyncio
import logging
from typing import Callable, Optional

import cv2

from dronestream.errors import ChannelClosedError
from dronestream.video.channel import FrameChannel
from dronestream.video.frame import Frame, FrameGeometry


logger = logging.getLogger(__name__)


FrameHandler = Callable[[Frame], Optional[bool]]


async def consume_frames(
    channel: FrameChannel,
    handler: FrameHandler,
    stop: Optional[asyncio.Event] = None,
) -> int:
    """
    Pass every frame to handler until the stream ends.

    Consumption ends when the channel closes, when stop is set, or when
    handler returns False.

    Args:
        channel: Channel to drain
        handler: Called once per frame, in order
        stop: Optional event that ends consumption

    Returns:
        Number of frames handled
    """
    handled = 0
    while stop is None or not stop.is_set():
        receive = asyncio.ensure_future(channel.receive())
        if stop is None:
            waiters = {receive}
        else:
            waiters = {receive, asyncio.ensure_future(stop.wait())}

        try:
            done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            for waiter in waiters:
                waiter.cancel()
            raise
        for waiter in pending:
            waiter.cancel()

        if receive not in done:
            break
        try:
            frame = receive.result()
        except ChannelClosedError:
            logger.info(f"Frame channel closed after {handled} frames")
            break

        handled += 1
        if handler(frame) is False:
            break

    return handled


async def display_frames(
    channel: FrameChannel,
    geometry: FrameGeometry,
    stop: Optional[asyncio.Event] = None,
    window_name: str = "Tello",
    show_invalid: bool = True,
    on_frame: Optional[Callable[[Frame], None]] = None,
) -> int:
    """
    Show frames in an OpenCV window until a key is pressed.

    Args:
        channel: Channel to drain
        geometry: Geometry the frames were decoded at
        stop: Optional event that ends the display
        window_name: Title of the window
        show_invalid: Also render degraded frames
        on_frame: Called with every received frame, shown or not

    Returns:
        Number of frames received
    """
    shown = False

    def show(frame: Frame) -> bool:
        nonlocal shown
        if on_frame is not None:
            on_frame(frame)
        if not frame.valid and not show_invalid:
            return True
        cv2.imshow(window_name, frame.to_array(geometry))
        shown = True
        if cv2.waitKey(1) >= 0:
            logger.info("Key pressed, closing display")
            return False
        return True

    try:
        return await consume_frames(channel, show, stop)
    finally:
        if shown:
            cv2.destroyWindow(window_name)

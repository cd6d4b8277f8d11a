"""
Video Module
============

Converter pipeline from compressed downlink bytes to raw frames.

This module provides the decoding layer of dronestream:
    - Converter: Drives the transcoder; write() in, frames out
    - FrameChannel: Closable async channel the frames are published on
    - CaptureSink: Optional verbatim recorder of the compressed input
    - consume_frames / display_frames: Channel consumers

Example:
    from dronestream.video import Converter

    stop = asyncio.Event()
    converter = Converter.create()
    frames = converter.start(stop)

    async for frame in frames:
        process(frame.to_array(converter.geometry))
"""

from dronestream.video.frame import Frame, FrameGeometry
from dronestream.video.channel import FrameChannel
from dronestream.video.capture import CaptureSink, load_capture
from dronestream.video.decoder import Decoder, SubprocessDecoder, build_ffmpeg_command
from dronestream.video.reader import ReadErrorPolicy, pipe_to_channel, read_exactly
from dronestream.video.converter import Converter
from dronestream.video.display import consume_frames, display_frames


__all__ = [
    "Frame",
    "FrameGeometry",
    "FrameChannel",
    "CaptureSink",
    "load_capture",
    "Decoder",
    "SubprocessDecoder",
    "build_ffmpeg_command",
    "ReadErrorPolicy",
    "pipe_to_channel",
    "read_exactly",
    "Converter",
    "consume_frames",
    "display_frames",
]

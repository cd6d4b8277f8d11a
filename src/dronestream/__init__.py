"""
dronestream
===========

Raw frame extraction from a compressed drone video downlink.

Compressed bytes written to a Converter are piped through an external
transcoder (ffmpeg); its rawvideo output is sliced into fixed-size
frames and published on an asyncio channel.

Components:
    - video: Converter, frame reader loop, frame channel, raw capture
    - config: YAML/environment settings and logging setup
    - errors: Error taxonomy

Example:
    from dronestream.video import Converter

    converter = Converter.create(capture_raw=False)
    frames = converter.start(stop_event)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]

#!/usr/bin/env python3
"""
Capture Replay Script
=====================

Standalone script to replay a raw capture through the converter.

This script:
    1. Loads a capture written with capture enabled
    2. Feeds it to a real ffmpeg converter from a worker thread
    3. Counts (and optionally displays) the decoded frames
    4. Reports a final summary

Prerequisites:
    - ffmpeg must be on PATH (or set DRONESTREAM_FFMPEG)
    - Install the package: pip install -e .

Usage:
    python scripts/replay_capture.py --capture fixtures/video-stream.dat
    python scripts/replay_capture.py --capture fixtures/video-stream.dat --show
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from dronestream.config import settings, setup_logging
from dronestream.errors import ConverterClosedError
from dronestream.video import Converter, consume_frames, display_frames, load_capture


logger = logging.getLogger(__name__)


def feed(converter: Converter, data: bytes, chunk_size: int) -> int:
    """Write data to the converter in chunks, as a downlink would."""
    sent = 0
    try:
        while sent < len(data):
            chunk = data[sent:sent + chunk_size]
            while chunk:
                n = converter.write(chunk)
                chunk = chunk[n:]
                sent += n
    except (ConverterClosedError, OSError) as e:
        logger.info(f"Feeding stopped after {sent} bytes: {e}")
        return sent

    logger.info(f"Fed {sent} bytes")
    return sent


async def replay(path: str, duration: float, chunk_size: int, show: bool) -> dict:
    """
    Replay a capture and count decoded frames.

    Args:
        path: Capture file path
        duration: Maximum seconds to run
        chunk_size: Bytes per write() call
        show: Display frames in an OpenCV window

    Returns:
        Summary dict
    """
    data = load_capture(path)
    logger.info(f"Loaded {len(data)} bytes from {path}")

    # Never re-capture a replay
    converter = Converter.create(capture_raw=False)
    stop = asyncio.Event()
    frames = converter.start(stop)

    counts = {"valid": 0, "invalid": 0}

    def tally(frame) -> None:
        counts["valid" if frame.valid else "invalid"] += 1

    def count(frame) -> bool:
        tally(frame)
        # A degraded frame after the input is exhausted means EOF
        return frame.valid

    feeder = asyncio.ensure_future(asyncio.to_thread(feed, converter, data, chunk_size))
    start_time = time.time()
    try:
        if show:
            consumer = display_frames(frames, converter.geometry, stop, on_frame=tally)
        else:
            consumer = consume_frames(frames, count, stop)
        try:
            await asyncio.wait_for(consumer, timeout=duration)
        except asyncio.TimeoutError:
            logger.info(f"Replay duration ({duration}s) reached")
    finally:
        stop.set()
        await converter.reader_task
        converter.close()
        await feeder

    elapsed = time.time() - start_time
    total = counts["valid"] + counts["invalid"]
    logger.info("=" * 60)
    logger.info("REPLAY SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Runtime: {elapsed:.1f} seconds")
    logger.info(f"Frames: {total} ({counts['invalid']} degraded)")
    logger.info(f"Average FPS: {total / elapsed if elapsed > 0 else 0:.1f}")
    logger.info("=" * 60)

    return {"duration": elapsed, **counts}


def main():
    parser = argparse.ArgumentParser(
        description="Replay a raw downlink capture through the converter"
    )
    parser.add_argument(
        "--capture",
        type=str,
        default=os.path.join(settings.capture.directory, settings.capture.filename),
        help="Capture file (default: from config)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=60.0,
        help="Maximum runtime in seconds (default: 60)",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=1460,
        help="Bytes per write, roughly one downlink packet (default: 1460)",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Display frames in an OpenCV window",
    )

    args = parser.parse_args()
    setup_logging(settings)

    result = asyncio.run(replay(
        path=args.capture,
        duration=args.duration,
        chunk_size=args.chunk_size,
        show=args.show,
    ))

    sys.exit(0 if result["valid"] > 0 else 1)


if __name__ == "__main__":
    main()

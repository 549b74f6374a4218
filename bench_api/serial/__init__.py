"""Bench serial frame codec (no port I/O)."""

from .frames import (
    DELIMITER,
    BenchData,
    Frame,
    FrameDecoder,
    FrameError,
    FrameId,
    decode_frame,
    encode_frame,
    frame_to_event,
)

__all__ = [
    "DELIMITER",
    "BenchData",
    "Frame",
    "FrameDecoder",
    "FrameError",
    "FrameId",
    "decode_frame",
    "encode_frame",
    "frame_to_event",
]

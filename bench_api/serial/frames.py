"""Bench serial frame codec.

Frame layout:

    0xB3 | frame_id | payload ... | checksum

The checksum is the XOR of every preceding byte, delimiter included. The
payload length is fixed per frame id, so a byte stream can be split into
frames without a length field.

This module only encodes/decodes bytes and maps decoded frames to inbound
bench events; opening and reading the serial port belongs to the hardware
driver.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from functools import reduce
from typing import Any, Optional

from ..core.errors import MalformedEvent

logger = logging.getLogger(__name__)

DELIMITER = 0xB3

# battery, bench and load temperature, voltage, current (big-endian u16)
_REQUEST_DATA = struct.Struct(">5H")

# Readings travel as hundredths of °C / V / A
READING_SCALE = 100.0


class FrameError(MalformedEvent):
    """Raised when a frame cannot be decoded."""

    code = "malformed_frame"


class FrameId(IntEnum):
    PING = 0x00
    ASSIGN_ID = 0x01
    REQUEST_DATA = 0x02
    SET_STANDBY = 0x04
    SET_DISCHARGE = 0x05
    SET_CHARGE = 0x06
    ANNOUNCE_COMPLETION = 0x07


PAYLOAD_SIZES = {
    FrameId.PING: 1,
    FrameId.ASSIGN_ID: 1,
    FrameId.REQUEST_DATA: _REQUEST_DATA.size,
    FrameId.SET_STANDBY: 0,
    FrameId.SET_DISCHARGE: 0,
    FrameId.SET_CHARGE: 0,
    FrameId.ANNOUNCE_COMPLETION: 1,
}


@dataclass(frozen=True)
class Frame:
    frame_id: FrameId
    payload: bytes = b""

    def encode(self) -> bytes:
        return encode_frame(self.frame_id, self.payload)


@dataclass(frozen=True)
class BenchData:
    """Decoded REQUEST_DATA payload (raw hundredths)."""

    battery_temperature: int
    bench_temperature: int
    load_temperature: int
    voltage: int
    current: int

    @classmethod
    def from_payload(cls, payload: bytes) -> "BenchData":
        if len(payload) != _REQUEST_DATA.size:
            raise FrameError(
                f"REQUEST_DATA payload must be {_REQUEST_DATA.size} bytes, got {len(payload)}"
            )
        return cls(*_REQUEST_DATA.unpack(payload))

    def to_payload(self) -> bytes:
        return _REQUEST_DATA.pack(
            self.battery_temperature,
            self.bench_temperature,
            self.load_temperature,
            self.voltage,
            self.current,
        )

    def to_readings(self, scale: float = READING_SCALE) -> dict[str, float]:
        return {
            "battery_temperature": self.battery_temperature / scale,
            "temperature": self.bench_temperature / scale,
            "electronic_load_temperature": self.load_temperature / scale,
            "voltage": self.voltage / scale,
            "current": self.current / scale,
        }


def checksum(data: bytes) -> int:
    return reduce(lambda acc, byte: acc ^ byte, data, 0)


def encode_frame(frame_id: FrameId, payload: bytes = b"") -> bytes:
    frame_id = FrameId(frame_id)
    expected = PAYLOAD_SIZES[frame_id]
    if len(payload) != expected:
        raise FrameError(f"{frame_id.name} payload must be {expected} bytes, got {len(payload)}")
    body = bytes([DELIMITER, frame_id]) + bytes(payload)
    return body + bytes([checksum(body)])


def decode_frame(data: bytes) -> Frame:
    """Decode one complete frame.

    Raises:
        FrameError: too short, missing delimiter, bad checksum, unknown
            frame id or payload length mismatch.
    """
    if len(data) < 3:
        raise FrameError("Input is too short to be valid")
    if data[0] != DELIMITER:
        raise FrameError(f"Missing frame delimiter (got 0x{data[0]:02X})")
    if checksum(data[:-1]) != data[-1]:
        raise FrameError("Invalid checksum")

    try:
        frame_id = FrameId(data[1])
    except ValueError:
        raise FrameError(f"Unknown frame id 0x{data[1]:02X}") from None

    payload = bytes(data[2:-1])
    if len(payload) != PAYLOAD_SIZES[frame_id]:
        raise FrameError(
            f"{frame_id.name} payload must be {PAYLOAD_SIZES[frame_id]} bytes, got {len(payload)}"
        )
    return Frame(frame_id=frame_id, payload=payload)


class FrameDecoder:
    """Incremental decoder for a serial byte stream.

    Bytes before a delimiter and frames with a bad checksum are discarded
    so the decoder resynchronises on the next delimiter.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.discarded = 0

    def feed(self, data: bytes) -> list[Frame]:
        self._buffer.extend(data)
        frames: list[Frame] = []

        while self._buffer:
            start = self._buffer.find(DELIMITER)
            if start < 0:
                self.discarded += len(self._buffer)
                self._buffer.clear()
                break
            if start > 0:
                self.discarded += start
                del self._buffer[:start]

            if len(self._buffer) < 2:
                break
            try:
                frame_id = FrameId(self._buffer[1])
            except ValueError:
                logger.debug("[FRAMES] Unknown frame id 0x%02X, resyncing", self._buffer[1])
                self.discarded += 1
                del self._buffer[:1]
                continue

            size = 2 + PAYLOAD_SIZES[frame_id] + 1
            if len(self._buffer) < size:
                break

            chunk = bytes(self._buffer[:size])
            try:
                frames.append(decode_frame(chunk))
            except FrameError as e:
                logger.debug("[FRAMES] Dropping frame: %s", e)
                self.discarded += 1
                del self._buffer[:1]
                continue
            del self._buffer[:size]

        return frames


def frame_to_event(
    frame: Frame,
    *,
    bench_id: int,
    port: str,
    timestamp: Optional[datetime] = None,
    scale: float = READING_SCALE,
) -> Optional[dict[str, Any]]:
    """Map a decoded frame to an inbound bench event.

    Returns None for frames that carry no telemetry (PING, ASSIGN_ID).
    """
    ts = (timestamp or datetime.now(timezone.utc)).isoformat()
    event: dict[str, Any] = {"bench_id": bench_id, "port": port, "timestamp": ts}

    if frame.frame_id == FrameId.REQUEST_DATA:
        event.update(BenchData.from_payload(frame.payload).to_readings(scale))
    elif frame.frame_id == FrameId.SET_STANDBY:
        event["state"] = "STANDBY"
    elif frame.frame_id == FrameId.SET_CHARGE:
        event["state"] = "CHARGE"
    elif frame.frame_id == FrameId.SET_DISCHARGE:
        event["state"] = "DISCHARGE"
    elif frame.frame_id == FrameId.ANNOUNCE_COMPLETION:
        # Completion means the bench is back in standby
        event["state"] = "STANDBY"
        event["status"] = "SUCCESS" if frame.payload[0] == 1 else "FAIL"
    else:
        return None
    return event

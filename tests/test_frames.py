"""Tests del codec de tramas serie del banco.

Ejecutar:
    pytest tests/test_frames.py -v
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from bench_api.cli import main
from bench_api.core.errors import MalformedEvent
from bench_api.core.models import BenchState, CompletionStatus
from bench_api.core.registry import BenchRegistry
from bench_api.ingest.ingestor import EventIngestor
from bench_api.serial.frames import (
    DELIMITER,
    BenchData,
    Frame,
    FrameDecoder,
    FrameError,
    FrameId,
    checksum,
    decode_frame,
    encode_frame,
    frame_to_event,
)


TS = datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def bench_data() -> BenchData:
    # 25.50 °C batería, 24.10 °C banco, 31.20 °C carga, 12.10 V, 1.50 A
    return BenchData(
        battery_temperature=2550,
        bench_temperature=2410,
        load_temperature=3120,
        voltage=1210,
        current=150,
    )


@pytest.fixture
def data_frame(bench_data) -> bytes:
    return encode_frame(FrameId.REQUEST_DATA, bench_data.to_payload())


# =============================================================================
# TEST 1: CODIFICACIÓN
# =============================================================================

class TestEncodeDecode:

    def test_frame_layout(self, data_frame):
        assert data_frame[0] == DELIMITER
        assert data_frame[1] == FrameId.REQUEST_DATA
        assert len(data_frame) == 2 + 10 + 1
        # XOR de toda la trama (checksum incluido) es cero
        assert checksum(data_frame) == 0

    def test_decode_request_data(self, data_frame, bench_data):
        frame = decode_frame(data_frame)

        assert frame.frame_id == FrameId.REQUEST_DATA
        assert BenchData.from_payload(frame.payload) == bench_data

    def test_frame_encode_matches_function(self):
        frame = Frame(FrameId.ANNOUNCE_COMPLETION, b"\x01")

        assert frame.encode() == encode_frame(FrameId.ANNOUNCE_COMPLETION, b"\x01")

    def test_encode_wrong_payload_size(self):
        with pytest.raises(FrameError):
            encode_frame(FrameId.SET_CHARGE, b"\x00")


class TestDecodeErrors:

    def test_too_short(self):
        with pytest.raises(FrameError, match="too short"):
            decode_frame(b"\xb3\x00")

    def test_missing_delimiter(self):
        with pytest.raises(FrameError, match="delimiter"):
            decode_frame(b"\x00\x04\x04")

    def test_invalid_checksum(self, data_frame):
        corrupted = data_frame[:-1] + bytes([data_frame[-1] ^ 0xFF])

        with pytest.raises(FrameError, match="Invalid checksum"):
            decode_frame(corrupted)

    def test_unknown_frame_id(self):
        body = bytes([DELIMITER, 0x03])

        with pytest.raises(FrameError, match="Unknown frame id"):
            decode_frame(body + bytes([checksum(body)]))

    def test_payload_size_mismatch(self):
        body = bytes([DELIMITER, FrameId.PING])

        with pytest.raises(FrameError, match="payload"):
            decode_frame(body + bytes([checksum(body)]))

    def test_frame_error_is_malformed_event(self):
        assert issubclass(FrameError, MalformedEvent)
        assert FrameError("x").code == "malformed_frame"


# =============================================================================
# TEST 2: DECODIFICADOR INCREMENTAL
# =============================================================================

class TestFrameDecoder:

    def test_skips_garbage_and_buffers_partial(self, data_frame):
        decoder = FrameDecoder()
        ping = encode_frame(FrameId.PING, b"\x05")

        frames = decoder.feed(b"\x00\x11" + data_frame + ping[:2])

        assert [f.frame_id for f in frames] == [FrameId.REQUEST_DATA]
        assert decoder.discarded == 2

        frames = decoder.feed(ping[2:])

        assert frames == [Frame(FrameId.PING, b"\x05")]

    def test_resyncs_after_bad_checksum(self, data_frame):
        decoder = FrameDecoder()
        corrupted = data_frame[:-1] + bytes([data_frame[-1] ^ 0xFF])
        standby = encode_frame(FrameId.SET_STANDBY)

        frames = decoder.feed(corrupted + standby)

        assert frames == [Frame(FrameId.SET_STANDBY, b"")]
        assert decoder.discarded > 0


# =============================================================================
# TEST 3: TRAMA → EVENTO
# =============================================================================

class TestFrameToEvent:

    def test_request_data_readings(self, data_frame):
        event = frame_to_event(decode_frame(data_frame), bench_id=2, port="COM 2", timestamp=TS)

        assert event["bench_id"] == 2
        assert event["port"] == "COM 2"
        assert event["timestamp"] == TS.isoformat()
        assert event["voltage"] == 12.1
        assert event["current"] == 1.5
        assert event["battery_temperature"] == 25.5
        assert event["temperature"] == 24.1
        assert event["electronic_load_temperature"] == 31.2

    @pytest.mark.parametrize(
        "frame_id, state",
        [
            (FrameId.SET_STANDBY, "STANDBY"),
            (FrameId.SET_CHARGE, "CHARGE"),
            (FrameId.SET_DISCHARGE, "DISCHARGE"),
        ],
    )
    def test_state_frames(self, frame_id, state):
        event = frame_to_event(Frame(frame_id), bench_id=1, port="COM 1", timestamp=TS)

        assert event["state"] == state
        assert "status" not in event

    @pytest.mark.parametrize("flag, status", [(1, "SUCCESS"), (0, "FAIL")])
    def test_completion(self, flag, status):
        frame = Frame(FrameId.ANNOUNCE_COMPLETION, bytes([flag]))

        event = frame_to_event(frame, bench_id=1, port="COM 1", timestamp=TS)

        assert event["state"] == "STANDBY"
        assert event["status"] == status

    @pytest.mark.parametrize("frame_id", [FrameId.PING, FrameId.ASSIGN_ID])
    def test_no_telemetry(self, frame_id):
        frame = Frame(frame_id, b"\x01")

        assert frame_to_event(frame, bench_id=1, port="COM 1") is None

    def test_frames_drive_a_run(self, data_frame):
        registry = BenchRegistry()
        ingestor = EventIngestor(registry)
        stream = (
            encode_frame(FrameId.SET_CHARGE)
            + data_frame
            + encode_frame(FrameId.ANNOUNCE_COMPLETION, b"\x01")
        )

        for i, frame in enumerate(FrameDecoder().feed(stream)):
            event = frame_to_event(
                frame, bench_id=3, port="COM 3", timestamp=TS + timedelta(seconds=i)
            )
            assert ingestor.ingest(event).accepted is True

        record = registry.get(3)
        assert record.state == BenchState.STANDBY
        assert record.status == CompletionStatus.SUCCESS
        assert record.voltage == 12.1
        assert record.start_date == TS
        assert record.end_date == TS + timedelta(seconds=2)


# =============================================================================
# TEST 4: REPLAY DE CAPTURAS
# =============================================================================

class TestReplayFramesCli:

    @pytest.fixture
    def capture(self, tmp_path, data_frame):
        path = tmp_path / "capture.bin"
        path.write_bytes(
            b"\x00\x17"
            + encode_frame(FrameId.PING, b"\x03")
            + encode_frame(FrameId.SET_CHARGE)
            + data_frame
            + encode_frame(FrameId.ANNOUNCE_COMPLETION, b"\x01")
        )
        return path

    def test_replay_frames_report(self, capture, capsys, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")

        code = main(["replay-frames", str(capture), "--bench-id", "3", "--port", "COM 3"])

        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["frames"] == 4
        assert report["discarded_bytes"] == 2
        assert report["events"] == 3
        assert report["accepted"] == 3
        [bench] = report["benches"]
        assert bench["id"] == 3
        assert bench["state"] == "STANDBY"
        assert bench["status"] == "SUCCESS"
        assert report["aggregates"]["voltage"] == [{"bench_id": 3, "value": 12.1}]

    def test_replay_frames_bad_port(self, capture, capsys, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")

        main(["replay-frames", str(capture), "--bench-id", "3", "--port", "usb?"])

        report = json.loads(capsys.readouterr().out)
        assert report["accepted"] == 0
        assert {r["error"]["code"] for r in report["rejected"]} == {"malformed_event"}

    def test_replay_frames_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")

        args = ["replay-frames", str(tmp_path / "none.bin"), "--bench-id", "1", "--port", "COM 1"]

        assert main(args) == 2

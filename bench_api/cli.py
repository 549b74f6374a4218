"""CLI entry point: replay recorded bench traffic through the ingestor.

    bench-telemetry replay events.jsonl
    bench-telemetry replay-frames capture.bin --bench-id 3 --port "COM 3"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from common.config import get_settings

from .core.aggregates import MetricFamily
from .ingest.backpressure_config import BackpressureConfig
from .serial.frames import FrameDecoder, frame_to_event
from .service import BenchTelemetryService

logger = logging.getLogger(__name__)

# Bytes leídos por iteración, similar a un read() del puerto serie
FRAME_CHUNK_SIZE = 256


def _read_events(path: str) -> list:
    events = []
    with open(path, "r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError as e:
                # El ingestor lo rechaza como malformed_event
                logger.warning("[REPLAY] Line %d is not valid JSON: %s", lineno, e)
                events.append(line)
    return events


def _read_frame_events(path: str, bench_id: int, port: str) -> tuple[list, dict]:
    """Decodifica una captura binaria del puerto serie en eventos de banco."""
    decoder = FrameDecoder()
    events = []
    frames = 0
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(FRAME_CHUNK_SIZE)
            if not chunk:
                break
            for frame in decoder.feed(chunk):
                frames += 1
                event = frame_to_event(frame, bench_id=bench_id, port=port)
                if event is not None:
                    events.append(event)
    if decoder.discarded:
        logger.warning("[REPLAY] Discarded %d bytes while resyncing", decoder.discarded)
    return events, {"frames": frames, "discarded_bytes": decoder.discarded}


def _ingest_report(events: list, aggregate: Optional[str]) -> dict:
    service = BenchTelemetryService(backpressure=BackpressureConfig())
    try:
        results = service.ingest_batch(events)
        report: dict[str, Any] = {
            "events": len(results),
            "accepted": sum(1 for r in results if r.accepted),
            "rejected": [r.to_dict() for r in results if not r.accepted],
            "benches": [r.to_dict() for r in service.list_benches()],
        }
        families = list(MetricFamily) if aggregate is None else [MetricFamily.parse(aggregate)]
        report["aggregates"] = {
            family.value: [p.to_dict() for p in service.get_aggregate(family)]
            for family in families
        }
        return report
    finally:
        service.stop(drain=False)


def replay(path: str, aggregate: Optional[str] = None) -> dict:
    return _ingest_report(_read_events(path), aggregate)


def replay_frames(path: str, bench_id: int, port: str, aggregate: Optional[str] = None) -> dict:
    events, decoding = _read_frame_events(path, bench_id, port)
    report = _ingest_report(events, aggregate)
    report.update(decoding)
    return report


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="bench-telemetry", description="Bench telemetry aggregation core")
    sub = p.add_subparsers(dest="command", required=True)

    rp = sub.add_parser("replay", help="replay a JSON-lines event file and print benches + aggregates")
    rp.add_argument("file")
    rp.add_argument("--aggregate", default=None, help="only print this metric family")
    rp.add_argument("--log-level", default=None)

    fp = sub.add_parser("replay-frames", help="decode a raw serial capture of one bench and replay it")
    fp.add_argument("file")
    fp.add_argument("--bench-id", type=int, required=True)
    fp.add_argument("--port", required=True, help='connection label, e.g. "COM 3"')
    fp.add_argument("--aggregate", default=None, help="only print this metric family")
    fp.add_argument("--log-level", default=None)
    args = p.parse_args(argv)

    logging.basicConfig(
        level=(args.log_level or get_settings().log_level).upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    try:
        if args.command == "replay-frames":
            report = replay_frames(args.file, args.bench_id, args.port, aggregate=args.aggregate)
        else:
            report = replay(args.file, aggregate=args.aggregate)
    except FileNotFoundError:
        logger.error("[REPLAY] File not found: %s", args.file)
        return 2
    except ValueError as e:
        logger.error("[REPLAY] %s", e)
        return 2

    json.dump(report, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    logger.info("[REPLAY] %d/%d events accepted", report["accepted"], report["events"])
    return 0


if __name__ == "__main__":
    sys.exit(main())

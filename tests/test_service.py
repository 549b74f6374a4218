"""Tests del servicio (composition root) y del CLI de replay.

Ejecutar:
    pytest tests/test_service.py -v
"""

import json

import pytest

from common.config import DEFAULT_PORT_PATTERN, Settings, get_settings
from bench_api.cli import main
from bench_api.core.aggregates import AggregatePoint
from bench_api.ingest.backpressure_config import BackpressureConfig
from bench_api.service import BenchTelemetryService, get_service, reset_service


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        log_level="INFO",
        api_key=None,
        port_pattern=DEFAULT_PORT_PATTERN,
        notify_timeout_seconds=1.0,
    )


@pytest.fixture
def service(settings):
    service = BenchTelemetryService(settings, backpressure=BackpressureConfig(num_workers=2))
    yield service
    service.stop(drain=False)


@pytest.fixture
def events_file(tmp_path):
    lines = [
        {"bench_id": 2, "port": "COM 2", "voltage": 11.9, "timestamp": "2026-01-31T08:00:00Z"},
        {"bench_id": 1, "port": "COM 1", "state": "CHARGE", "voltage": 12.1,
         "timestamp": "2026-01-31T08:00:01Z"},
        {"bench_id": 1, "port": "COM 1", "state": "DISCHARGE", "timestamp": "2026-01-31T08:00:02Z"},
    ]
    path = tmp_path / "events.jsonl"
    path.write_text(
        "\n".join(json.dumps(line) for line in lines) + "\n# comment\n{not json\n",
        encoding="utf-8",
    )
    return path


# =============================================================================
# TEST 1: API DE CONSULTA Y SUSCRIPCIÓN
# =============================================================================

class TestBenchTelemetryService:

    def test_query_api(self, service):
        service.ingest({"bench_id": 3, "port": "COM 3", "voltage": 11.8,
                        "temperature": 23.0, "timestamp": 0})
        service.ingest({"bench_id": 1, "port": "COM 1", "voltage": 12.1, "timestamp": 0})

        assert service.get_bench(3).voltage == 11.8
        assert service.get_bench(2) is None
        assert [r.id for r in service.list_benches()] == [1, 3]
        assert service.get_aggregate("voltages") == (
            AggregatePoint(1, 12.1),
            AggregatePoint(3, 11.8),
        )
        assert service.get_temperatures()["temperature"] == (AggregatePoint(3, 23.0),)

    def test_subscribe_and_unsubscribe(self, service):
        received = []
        handle = service.subscribe(received.append, name="dashboard")

        service.ingest({"bench_id": 1, "port": "COM 1", "voltage": 12.1, "timestamp": 0})
        service.unsubscribe(handle)
        service.ingest({"bench_id": 1, "port": "COM 1", "voltage": 12.3, "timestamp": 1})

        assert [n.changed_ids for n in received] == [frozenset({1})]

    def test_submit_through_processor(self, service):
        service.start()
        service.submit({"bench_id": 5, "port": "COM 5", "current": 0.5, "timestamp": 0})
        service.processor.join()

        assert service.get_bench(5).current == 0.5

    def test_stats(self, service):
        service.ingest({"bench_id": 1, "port": "COM 1", "voltage": 12.1, "timestamp": 0})

        stats = service.stats()

        assert stats["benches"] == 1
        assert stats["registry_version"] == 1
        assert stats["ingestor"]["applied"] == 1
        assert set(stats) == {
            "benches", "registry_version", "ingestor", "queue", "aggregates", "subscriptions",
        }

    def test_singleton(self, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")
        reset_service()
        try:
            first = get_service()
            assert get_service() is first
            reset_service()
            assert get_service() is not first
        finally:
            reset_service()


class TestSettings:

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")
        monkeypatch.setenv("BENCH_LOG_LEVEL", "debug")
        monkeypatch.setenv("BENCH_API_KEY", "secret")
        monkeypatch.setenv("BENCH_NOTIFY_TIMEOUT_SECONDS", "0.75")

        settings = get_settings()

        assert settings.log_level == "DEBUG"
        assert settings.api_key == "secret"
        assert settings.notify_timeout_seconds == 0.75
        assert settings.port_pattern == DEFAULT_PORT_PATTERN

    def test_env_file_loaded(self, monkeypatch, tmp_path):
        env_file = tmp_path / "bench.env"
        env_file.write_text("BENCH_NOTIFY_TIMEOUT_SECONDS=0.5\n", encoding="utf-8")
        monkeypatch.setenv("BENCH_ENV_FILE", str(env_file))
        monkeypatch.delenv("BENCH_NOTIFY_TIMEOUT_SECONDS", raising=False)
        try:
            assert get_settings().notify_timeout_seconds == 0.5
        finally:
            # load_dotenv escribe en os.environ
            monkeypatch.delenv("BENCH_NOTIFY_TIMEOUT_SECONDS", raising=False)


# =============================================================================
# TEST 2: CLI
# =============================================================================

class TestReplayCli:

    def test_replay_prints_report(self, events_file, capsys, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")

        assert main(["replay", str(events_file)]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["events"] == 4
        assert report["accepted"] == 2
        codes = sorted(r["error"]["code"] for r in report["rejected"])
        assert codes == ["invalid_transition", "malformed_event"]
        assert [b["id"] for b in report["benches"]] == [1, 2]
        assert report["aggregates"]["voltage"] == [
            {"bench_id": 1, "value": 12.1},
            {"bench_id": 2, "value": 11.9},
        ]

    def test_replay_single_family(self, events_file, capsys, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")

        assert main(["replay", str(events_file), "--aggregate", "currents"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["aggregates"] == {"current": []}

    def test_replay_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")

        assert main(["replay", str(tmp_path / "missing.jsonl")]) == 2

    def test_replay_unknown_family(self, events_file, monkeypatch):
        monkeypatch.setenv("BENCH_ENV_FILE", "")

        assert main(["replay", str(events_file), "--aggregate", "humidity"]) == 2

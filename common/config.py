from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


DEFAULT_PORT_PATTERN = r"^(COM\s?\d{1,3}|/dev/tty[A-Za-z]+\d*)$"


@dataclass(frozen=True)
class Settings:
    log_level: str
    api_key: str | None

    # Accepted physical connection labels (Windows COM ports, POSIX tty devices).
    port_pattern: str

    notify_timeout_seconds: float


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("BENCH_ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        log_level=os.getenv("BENCH_LOG_LEVEL", "INFO").upper(),
        api_key=os.getenv("BENCH_API_KEY") or None,
        port_pattern=os.getenv("BENCH_PORT_PATTERN", DEFAULT_PORT_PATTERN),
        notify_timeout_seconds=float(os.getenv("BENCH_NOTIFY_TIMEOUT_SECONDS", "2.0")),
    )

"""
Environment-driven settings.

Every knob is read at call time so tests can monkeypatch the environment.
"""

from __future__ import annotations

import os
from pathlib import Path

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()


def pool_min_size() -> int:
    return max(0, env_int("DB_POOL_MIN_SIZE", 1))


def pool_max_size() -> int:
    return max(1, env_int("DB_POOL_MAX_SIZE", 10))


def command_timeout_s() -> int:
    return env_int("DB_COMMAND_TIMEOUT_S", 30)


def lock_timeout_ms() -> int:
    return max(1, env_int("DB_LOCK_TIMEOUT_MS", 5000))


def migrate_on_startup() -> bool:
    return env_bool("DB_MIGRATE_ON_STARTUP", True)


def migrations_dir() -> Path:
    raw = os.environ.get("MIGRATIONS_DIR", "").strip()
    if raw:
        return Path(raw)
    # api/core/settings.py -> <repo>/db/migrations
    return Path(__file__).resolve().parents[2] / "db" / "migrations"


def cors_allow_origins() -> list[str]:
    raw = os.environ.get("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def reservation_period_days() -> int:
    return max(1, env_int("RESERVATION_PERIOD_DAYS", 14))


def app_host() -> str:
    return env_str("APP_HOST", "0.0.0.0")


def app_port() -> int:
    return env_int("APP_PORT", 8000)


def app_reload() -> bool:
    return env_bool("APP_RELOAD", False)

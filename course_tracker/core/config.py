"""Environment-driven settings, validated once at import.

Every knob is read from an environment variable; a malformed value fails
startup with a ValueError naming the variable.  DATABASE_URL and REDIS_URL
are optional: leaving them blank selects the in-memory stores, cache and
queue.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("true", "1")
_FALSY = ("false", "0")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in choices:
        raise ValueError(f"{name} must be one of {'|'.join(choices)} (got {value!r})")
    return value


def _env_int(name: str, default: int, *, minimum: int) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    sync_concurrency: int = 4
    sync_max_retries: int = 3
    report_cache_ttl: int = 300
    db_pool_size: int = 5
    redis_max_connections: int = 20

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    return Settings(
        app_env=_env_choice("APP_ENV", "dev", ("dev", "test", "prod")),  # type: ignore[arg-type]
        log_level=_env_choice(  # type: ignore[arg-type]
            "LOG_LEVEL", "info", ("debug", "info", "warning", "error")
        ),
        log_json=_env_choice("LOG_JSON", "false", _TRUTHY + _FALSY) in _TRUTHY,
        port=_env_int("PORT", 8000, minimum=1),
        database_url=_env("DATABASE_URL") or None,
        redis_url=_env("REDIS_URL") or None,
        # Upper bound on per-user syncs in flight during a bulk re-sync.
        sync_concurrency=_env_int("SYNC_CONCURRENCY", 4, minimum=1),
        sync_max_retries=_env_int("SYNC_MAX_RETRIES", 3, minimum=0),
        report_cache_ttl=_env_int("REPORT_CACHE_TTL", 300, minimum=1),
        db_pool_size=_env_int("DB_POOL_SIZE", 5, minimum=1),
        redis_max_connections=_env_int("REDIS_MAX_CONNECTIONS", 20, minimum=1),
    )


SETTINGS = load_settings()

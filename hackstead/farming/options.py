"""Runtime options for the farm loop."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from ..const import (
    CONF_ACTIVE_WINDOW_SECONDS,
    CONF_CYCLE_SECONDS,
    CONF_DATA_DIR,
    CONF_DB_PATH,
    CONF_FETCH_CONCURRENCY,
    CONF_NOTIFY_CONCURRENCY,
    CONF_NOTIFY_TIMEOUT,
    CONF_STORE_TIMEOUT,
    CONF_TICK_SECONDS,
    CONF_WEBHOOK_URL,
    DEFAULT_ACTIVE_WINDOW_SECONDS,
    DEFAULT_CYCLE_SECONDS,
    DEFAULT_DB_PATH,
    DEFAULT_FETCH_CONCURRENCY,
    DEFAULT_NOTIFY_CONCURRENCY,
    DEFAULT_NOTIFY_TIMEOUT,
    DEFAULT_STORE_TIMEOUT,
    DEFAULT_TICK_SECONDS,
    ENV_DB_PATH,
    ENV_WEBHOOK_URL,
)
from ..exceptions import ConfigError
from ..schema import schema_errors
from ..utils import DATA_ENV

__all__ = ["FARMING_OPTIONS_SCHEMA", "FarmingConfig"]

_POSITIVE_SECONDS = {"type": "number", "exclusiveMinimum": 0}
_POSITIVE_INT = {"type": "integer", "minimum": 1}

FARMING_OPTIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        CONF_CYCLE_SECONDS: _POSITIVE_SECONDS,
        CONF_TICK_SECONDS: _POSITIVE_SECONDS,
        CONF_ACTIVE_WINDOW_SECONDS: _POSITIVE_SECONDS,
        CONF_FETCH_CONCURRENCY: _POSITIVE_INT,
        CONF_NOTIFY_CONCURRENCY: _POSITIVE_INT,
        CONF_STORE_TIMEOUT: _POSITIVE_SECONDS,
        CONF_NOTIFY_TIMEOUT: _POSITIVE_SECONDS,
        CONF_DATA_DIR: {"type": ["string", "null"], "minLength": 1},
        CONF_DB_PATH: {"type": "string", "minLength": 1},
        CONF_WEBHOOK_URL: {"type": ["string", "null"], "pattern": "^https?://[^/\\s]+"},
    },
}

_DEFAULTS: dict[str, Any] = {
    CONF_CYCLE_SECONDS: DEFAULT_CYCLE_SECONDS,
    CONF_TICK_SECONDS: DEFAULT_TICK_SECONDS,
    CONF_ACTIVE_WINDOW_SECONDS: DEFAULT_ACTIVE_WINDOW_SECONDS,
    CONF_FETCH_CONCURRENCY: DEFAULT_FETCH_CONCURRENCY,
    CONF_NOTIFY_CONCURRENCY: DEFAULT_NOTIFY_CONCURRENCY,
    CONF_STORE_TIMEOUT: DEFAULT_STORE_TIMEOUT,
    CONF_NOTIFY_TIMEOUT: DEFAULT_NOTIFY_TIMEOUT,
    CONF_DATA_DIR: None,
    CONF_DB_PATH: DEFAULT_DB_PATH,
    CONF_WEBHOOK_URL: None,
}

_FLOAT_KEYS = frozenset(
    {CONF_CYCLE_SECONDS, CONF_TICK_SECONDS, CONF_ACTIVE_WINDOW_SECONDS, CONF_STORE_TIMEOUT, CONF_NOTIFY_TIMEOUT}
)
_INT_KEYS = frozenset({CONF_FETCH_CONCURRENCY, CONF_NOTIFY_CONCURRENCY})


def _coerce(key: str, value: Any) -> Any:
    # option forms and environment variables hand numbers over as text
    if isinstance(value, bool) or not isinstance(value, str | int | float):
        return value
    try:
        return int(value) if key in _INT_KEYS else float(value)
    except ValueError:
        return value


@dataclass(frozen=True, slots=True)
class FarmingConfig:
    """Timing, concurrency and location settings for the farm loop."""

    cycle_seconds: float = DEFAULT_CYCLE_SECONDS
    tick_seconds: float = DEFAULT_TICK_SECONDS
    active_window_seconds: float = DEFAULT_ACTIVE_WINDOW_SECONDS
    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY
    notify_concurrency: int = DEFAULT_NOTIFY_CONCURRENCY
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    notify_timeout: float = DEFAULT_NOTIFY_TIMEOUT
    data_dir: Path | None = None
    db_path: str = DEFAULT_DB_PATH
    webhook_url: str | None = None

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> FarmingConfig:
        opts = {**_DEFAULTS, **{k: v for k, v in options.items() if k in _DEFAULTS}}
        for key in _FLOAT_KEYS | _INT_KEYS:
            opts[key] = _coerce(key, opts[key])
        issues = schema_errors(FARMING_OPTIONS_SCHEMA, opts)
        if issues:
            raise ConfigError("invalid farming options: " + "; ".join(issues))
        data_dir = opts[CONF_DATA_DIR]
        return cls(
            cycle_seconds=opts[CONF_CYCLE_SECONDS],
            tick_seconds=opts[CONF_TICK_SECONDS],
            active_window_seconds=opts[CONF_ACTIVE_WINDOW_SECONDS],
            fetch_concurrency=opts[CONF_FETCH_CONCURRENCY],
            notify_concurrency=opts[CONF_NOTIFY_CONCURRENCY],
            store_timeout=opts[CONF_STORE_TIMEOUT],
            notify_timeout=opts[CONF_NOTIFY_TIMEOUT],
            data_dir=Path(data_dir).expanduser() if data_dir else None,
            db_path=opts[CONF_DB_PATH],
            webhook_url=opts[CONF_WEBHOOK_URL],
        )

    @classmethod
    def from_env(cls, options: Mapping[str, Any] | None = None) -> FarmingConfig:
        """Build from ``options`` with environment variables taking precedence."""

        merged = dict(options or {})
        env = {
            CONF_DATA_DIR: os.getenv(DATA_ENV),
            CONF_DB_PATH: os.getenv(ENV_DB_PATH),
            CONF_WEBHOOK_URL: os.getenv(ENV_WEBHOOK_URL),
        }
        merged.update({key: value for key, value in env.items() if value})
        return cls.from_options(merged)

    def with_overrides(self, **changes: Any) -> FarmingConfig:
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def as_dict(self) -> dict[str, Any]:
        return {
            CONF_CYCLE_SECONDS: self.cycle_seconds,
            CONF_TICK_SECONDS: self.tick_seconds,
            CONF_ACTIVE_WINDOW_SECONDS: self.active_window_seconds,
            CONF_FETCH_CONCURRENCY: self.fetch_concurrency,
            CONF_NOTIFY_CONCURRENCY: self.notify_concurrency,
            CONF_STORE_TIMEOUT: self.store_timeout,
            CONF_NOTIFY_TIMEOUT: self.notify_timeout,
            CONF_DATA_DIR: str(self.data_dir) if self.data_dir else None,
            CONF_DB_PATH: self.db_path,
            CONF_WEBHOOK_URL: self.webhook_url,
        }

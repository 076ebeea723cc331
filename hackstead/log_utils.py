from __future__ import annotations

import logging
import time

_LAST: dict[str, float] = {}
_MAX_CODES = 1024


def warn_once(logger: logging.Logger, code: str, message: str, *args, window: int = 60) -> None:
    """Log a warning once per time window for a given code.

    The scheduler hits the same condition every tick while a store is down, so
    repeats inside ``window`` seconds are dropped. The cache is capped and the
    oldest entries are discarded.
    """
    now = time.monotonic()
    last = _LAST.get(code)
    if last is None or now - last > window:
        if len(_LAST) >= _MAX_CODES:
            oldest = min(_LAST, key=_LAST.get)
            _LAST.pop(oldest, None)
        _LAST[code] = now
        logger.warning("%s: " + message, code, *args)


def reset_warnings() -> None:
    """Forget every rate-limited code."""

    _LAST.clear()

"""Inbound "account became active" signal consumed by the farm loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

_LOGGER = logging.getLogger(__name__)

__all__ = ["ActivityEvent", "ActivityFeed"]


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    user_id: str
    at: datetime


class ActivityFeed:
    """Unbounded queue of activity events.

    Producers on the loop call :meth:`mark_active`. Producers on other threads
    call :meth:`mark_active_threadsafe` once the feed is bound to the loop that
    drains it. Neither call ever blocks.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ActivityEvent] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def mark_active(self, user_id: str, at: datetime | None = None) -> None:
        self._queue.put_nowait(ActivityEvent(user_id, at or datetime.now(UTC)))

    def mark_active_threadsafe(self, user_id: str, at: datetime | None = None) -> None:
        if self._loop is None:
            raise RuntimeError("activity feed is not bound to an event loop")
        # stamp in the caller's thread, not when the loop gets around to it
        event = ActivityEvent(user_id, at or datetime.now(UTC))
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def drain(self) -> list[ActivityEvent]:
        """Return every queued event without waiting for more."""

        events: list[ActivityEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        if events:
            _LOGGER.debug("Drained %d activity events", len(events))
        return events

    def __len__(self) -> int:
        return self._queue.qsize()

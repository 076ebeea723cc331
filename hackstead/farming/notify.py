"""Tier-crossing notifications and the sinks that deliver them.

Formatting for a chat platform happens elsewhere. A notification only carries
the new tier's display fields and the subject's freshly aggregated summary.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import aiohttp

from ..advancement import Advancement

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "Notification",
    "NotificationSink",
    "LoggingNotifier",
    "WebhookNotifier",
    "hackstead_notification",
    "plant_notification",
]

KIND_HACKSTEAD = "hackstead"
KIND_PLANT = "plant"


@dataclass(frozen=True, slots=True)
class Notification:
    account_id: str
    kind: str
    display_title: str
    title: str
    description: str
    xp: int
    summary: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "kind": self.kind,
            "display_title": self.display_title,
            "title": self.title,
            "description": self.description,
            "xp": self.xp,
            "summary": self.summary,
        }


def hackstead_notification(account_id: str, advancement: Advancement, summary: dict[str, Any]) -> Notification:
    return Notification(
        account_id=account_id,
        kind=KIND_HACKSTEAD,
        display_title=f"Your Hackstead is now a {advancement.achiever_title}!",
        title=advancement.title,
        description=advancement.description,
        xp=advancement.xp,
        summary=summary,
    )


def plant_notification(
    account_id: str,
    plant_name: str,
    advancement: Advancement,
    summary: dict[str, Any],
) -> Notification:
    return Notification(
        account_id=account_id,
        kind=KIND_PLANT,
        display_title=f"Your {plant_name} is now a {advancement.achiever_title}!",
        title=advancement.title,
        description=advancement.description,
        xp=advancement.xp,
        summary=summary,
    )


@runtime_checkable
class NotificationSink(Protocol):
    async def send(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Write notifications to the log. Used when no webhook is configured."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or _LOGGER

    async def send(self, notification: Notification) -> None:
        self.logger.info(
            "[%s] %s (%s, %sxp)",
            notification.account_id,
            notification.display_title,
            notification.title,
            notification.xp,
        )


class WebhookNotifier:
    """POST each notification as JSON to ``url``."""

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session
        self._own_session = session is None

    async def send(self, notification: Notification) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        async with asyncio.timeout(self.timeout):
            async with self._session.post(self.url, json=notification.to_dict()) as resp:
                resp.raise_for_status()

    async def close(self) -> None:
        if self._own_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> WebhookNotifier:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

"""Tick-driven farming: scheduler, stores, activity feed and notifications."""

from .activity import ActivityEvent, ActivityFeed
from .notify import LoggingNotifier, Notification, NotificationSink, WebhookNotifier
from .options import FARMING_OPTIONS_SCHEMA, FarmingConfig
from .scheduler import FarmScheduler, TickResult
from .store import EntityKey, FarmStore, MemoryFarmStore, SqliteFarmStore, fetch_hacksteader

__all__ = [
    "ActivityEvent",
    "ActivityFeed",
    "Notification",
    "NotificationSink",
    "LoggingNotifier",
    "WebhookNotifier",
    "FARMING_OPTIONS_SCHEMA",
    "FarmingConfig",
    "FarmScheduler",
    "TickResult",
    "EntityKey",
    "FarmStore",
    "MemoryFarmStore",
    "SqliteFarmStore",
    "fetch_hacksteader",
]

from __future__ import annotations

from enum import StrEnum


class Category(StrEnum):
    """Document categories. Also the ``cat`` column of stored entities."""

    PROFILE = "profile"
    LAND = "land"
    GOTCHI = "gotchi"
    MISC = "misc"


# Archetype content files, looked up as ``<stem>.json`` or ``<stem>.yaml``.
HACKSTEAD_ADVANCEMENTS_FILE = "hackstead_advancements"
PLANT_ARCHETYPES_FILE = "plant_archetypes"
POSSESSION_ARCHETYPES_FILE = "possession_archetypes"
SPECIAL_USERS_FILE = "special_users"

CONF_CYCLE_SECONDS = "cycle_seconds"
CONF_TICK_SECONDS = "tick_seconds"
CONF_ACTIVE_WINDOW_SECONDS = "active_window_seconds"
CONF_FETCH_CONCURRENCY = "fetch_concurrency"
CONF_NOTIFY_CONCURRENCY = "notify_concurrency"
CONF_STORE_TIMEOUT = "store_timeout"
CONF_NOTIFY_TIMEOUT = "notify_timeout"
CONF_DATA_DIR = "data_dir"
CONF_DB_PATH = "db_path"
CONF_WEBHOOK_URL = "webhook_url"

# One simulation cycle every 15 seconds, ticking on the same boundary.
DEFAULT_CYCLE_SECONDS = 15.0
DEFAULT_TICK_SECONDS = 15.0
# Accounts drop out of the active set five minutes after their last interaction.
DEFAULT_ACTIVE_WINDOW_SECONDS = 300.0
DEFAULT_FETCH_CONCURRENCY = 50
DEFAULT_NOTIFY_CONCURRENCY = 20
DEFAULT_STORE_TIMEOUT = 30.0
DEFAULT_NOTIFY_TIMEOUT = 10.0
DEFAULT_DB_PATH = "hackstead.db"

ENV_DB_PATH = "HACKSTEAD_DB"
ENV_WEBHOOK_URL = "HACKSTEAD_WEBHOOK_URL"

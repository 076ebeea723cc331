#!/usr/bin/env python3
"""Run the Hackstead farm loop against a SQLite store."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure project root is on the Python path when executed directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hackstead.catalog import init_catalog
from hackstead.exceptions import ConfigError
from hackstead.farming import (
    FarmingConfig,
    FarmScheduler,
    LoggingNotifier,
    SqliteFarmStore,
    WebhookNotifier,
)

_LOGGER = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the Hackstead farm loop")
    parser.add_argument("--data-dir", type=Path, help="directory holding archetype content")
    parser.add_argument("--db", help="SQLite path for entities and the checkpoint")
    parser.add_argument("--webhook-url", help="POST notifications here instead of logging them")
    parser.add_argument("--cycle-seconds", type=float, help="length of one farming cycle")
    parser.add_argument("--tick-seconds", type=float, help="interval between ticks")
    parser.add_argument(
        "--active",
        action="append",
        default=[],
        metavar="USER",
        help="mark USER active before the first tick (repeatable)",
    )
    parser.add_argument("--once", action="store_true", help="run a single tick and print its result")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> FarmingConfig:
    config = FarmingConfig.from_env()
    return config.with_overrides(
        data_dir=args.data_dir,
        db_path=args.db,
        webhook_url=args.webhook_url,
        cycle_seconds=args.cycle_seconds,
        tick_seconds=args.tick_seconds,
    )


async def main_async(args: argparse.Namespace) -> int:
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    config = build_config(args)
    try:
        catalog = init_catalog(config.data_dir)
    except ConfigError as err:
        _LOGGER.error("Couldn't load archetype content: %s", err)
        return 1

    store = SqliteFarmStore(config.db_path)
    notifier = (
        WebhookNotifier(config.webhook_url, timeout=config.notify_timeout)
        if config.webhook_url
        else LoggingNotifier()
    )
    scheduler = FarmScheduler(store, catalog, config=config, notifier=notifier)
    for user_id in args.active:
        scheduler.mark_active(user_id)

    try:
        if args.once:
            await scheduler.load_checkpoint()
            result = await scheduler.tick()
            print(
                json.dumps(
                    {
                        **scheduler.status(),
                        "advanced": result.advanced,
                        "notifications": [n.to_dict() for n in result.notifications],
                    },
                    indent=2,
                )
            )
            return 0
        _LOGGER.info("Starting farm loop (cycle %ss, db %s)", config.cycle_seconds, config.db_path)
        await scheduler.run_forever()
    finally:
        if isinstance(notifier, WebhookNotifier):
            await notifier.close()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        code = asyncio.run(main_async(args))
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        _LOGGER.info("Farm loop stopped")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()

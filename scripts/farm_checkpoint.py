#!/usr/bin/env python3
"""Inspect or move the farm checkpoint stored in a SQLite database."""

from __future__ import annotations

import argparse
import sys
from datetime import UTC, datetime
from pathlib import Path

# Ensure project root is on the Python path when executed directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hackstead.const import DEFAULT_DB_PATH
from hackstead.farming.store import SqliteFarmStore
from hackstead.utils import format_rfc3339, parse_rfc3339, read_timestamp_file, write_timestamp_file


def _parse_when(raw: str) -> datetime:
    if raw == "now":
        return datetime.now(UTC)
    return parse_rfc3339(raw)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Farm checkpoint utilities")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="print the stored checkpoint")

    set_parser = sub.add_parser("set", help="overwrite the stored checkpoint")
    set_parser.add_argument("when", help="RFC 3339 timestamp or 'now'")

    export_parser = sub.add_parser("export", help="write the checkpoint to a text file")
    export_parser.add_argument("path", type=Path)

    import_parser = sub.add_parser("import", help="read the checkpoint from a text file")
    import_parser.add_argument("path", type=Path)

    args = parser.parse_args(argv)
    store = SqliteFarmStore(args.db)

    if args.command == "show":
        checkpoint = store.get_checkpoint_sync()
        if checkpoint is None:
            print("no checkpoint stored", file=sys.stderr)
            sys.exit(1)
        print(format_rfc3339(checkpoint))
        return

    if args.command == "set":
        try:
            when = _parse_when(args.when)
        except ValueError as err:
            parser.error(f"invalid timestamp {args.when!r}: {err}")
        store.put_checkpoint_sync(when)
        print(format_rfc3339(when))
        return

    if args.command == "export":
        checkpoint = store.get_checkpoint_sync()
        if checkpoint is None:
            print("no checkpoint stored", file=sys.stderr)
            sys.exit(1)
        write_timestamp_file(args.path, checkpoint)
        print(f"wrote {format_rfc3339(checkpoint)} to {args.path}")
        return

    if args.command == "import":
        try:
            checkpoint = read_timestamp_file(args.path)
        except ValueError as err:
            print(str(err), file=sys.stderr)
            sys.exit(1)
        if checkpoint is None:
            print(f"{args.path} does not exist", file=sys.stderr)
            sys.exit(1)
        store.put_checkpoint_sync(checkpoint)
        print(format_rfc3339(checkpoint))
        return


if __name__ == "__main__":  # pragma: no cover
    main()

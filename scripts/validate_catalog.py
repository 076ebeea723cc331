#!/usr/bin/env python3
"""Check that archetype content loads and summarise what it defines."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Ensure project root is on the Python path when executed directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hackstead.catalog import load_catalog
from hackstead.exceptions import ConfigError
from hackstead.utils import save_json


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Validate archetype content")
    parser.add_argument("--data-dir", type=Path, help="directory holding archetype content")
    parser.add_argument(
        "--max",
        action="store_true",
        help="print each plant's fully unlocked summary as JSON",
    )
    parser.add_argument("--output", type=Path, help="write every plant's fully unlocked summary to this JSON file")
    args = parser.parse_args(argv)

    try:
        catalog = load_catalog(args.data_dir)
    except ConfigError as err:
        print(f"Invalid content: {err}", file=sys.stderr)
        sys.exit(1)

    print(f"hackstead ladder: {len(catalog.profile_advancements)} tiers")
    for plant in catalog.plant_archetypes:
        print(f"plant {plant.name}: {len(plant.advancements)} tiers")
        if args.max:
            print(json.dumps(plant.advancements.max().to_dict(), indent=2))
    for item in catalog.possession_archetypes:
        print(f"{item.category} {item.name}")
    if catalog.special_users:
        print(f"special users: {len(catalog.special_users)}")
    if args.output:
        save_json(args.output, {plant.name: plant.advancements.max().to_dict() for plant in catalog.plant_archetypes})
        print(f"wrote {args.output}")
    print("Content valid")


if __name__ == "__main__":  # pragma: no cover
    main()

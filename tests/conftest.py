from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from hackstead.catalog import Catalog, init_catalog, reset_catalog
from hackstead.log_utils import reset_warnings

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def tier(kind: dict[str, Any], xp: int, title: str | None = None) -> dict[str, Any]:
    return {
        "kind": kind,
        "xp": xp,
        "art": "",
        "title": title or f"tier {xp}",
        "description": f"reached {xp}xp",
        "achiever_title": f"Level {xp}",
    }


def ladder(*tiers: dict[str, Any]) -> dict[str, Any]:
    base, *rest = tiers
    return {"base": base, "rest": rest}


def farm_content(
    *,
    plant_tiers: tuple[dict[str, Any], ...] | None = None,
    base_yield_duration: float = 1000,
) -> dict[str, Any]:
    """Small content set: one plant with a {0, 1, 2} ladder and a few items."""

    plant_tiers = plant_tiers or (
        tier({"Xp": 1.0}, 0, "Sprout"),
        tier({"YieldSpeed": 1.0}, 1, "Shoot"),
        tier({"YieldSize": 1.0}, 2, "Bloom"),
    )
    return {
        "hackstead_advancements": ladder(
            tier({"Land": {"pieces": 1}}, 0, "Start"),
            tier({"Land": {"pieces": 1}}, 1000, "Grown"),
        ),
        "plant_archetypes": [
            {"name": "Sprout", "base_yield_duration": base_yield_duration, "advancements": ladder(*plant_tiers)},
        ],
        "possession_archetypes": [
            {"name": "Leaf", "description": "a leaf", "kind": {"Keepsake": {}}},
            {"name": "Acorn", "description": "an acorn", "kind": {"Keepsake": {}}},
            {"name": "Sprout Seed", "kind": {"Seed": {"grows_into": "Sprout"}}},
        ],
        "special_users": [],
    }


@pytest.fixture(autouse=True)
def _clean_globals():
    reset_catalog()
    reset_warnings()
    yield
    reset_catalog()
    reset_warnings()


@pytest.fixture
def shipped_catalog() -> Catalog:
    """The catalog built from the bundled content, installed process-wide."""

    return init_catalog()


@pytest.fixture
def make_catalog() -> Callable[..., Catalog]:
    def _make(install: bool = True, **kwargs: Any) -> Catalog:
        catalog = Catalog.from_raw(**farm_content(**kwargs))
        if install:
            init_catalog(catalog, replace=True)
        return catalog

    return _make

"""Advancement effects and the summaries they aggregate into.

Two subject kinds exist. A hackstead (an account) only unlocks land, while a
plant's tiers can boost multipliers, add harvest yields, add crafting recipes
or wrap any of those in :class:`Neighbor` so the effect is granted to the
other plants on the same hackstead instead of the holder.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .advancement import Advancement
from .exceptions import ResolutionError, UnknownArchetypeError
from .spawning import Recipe, SpawnRate

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "Land",
    "Xp",
    "YieldSpeed",
    "YieldSize",
    "Neighbor",
    "Yield",
    "Craft",
    "HacksteadSummary",
    "PlantSummary",
    "parse_hackstead_kind",
    "parse_plant_kind",
    "plant_kind_to_raw",
    "resolve_plant_kind",
]


# ---------------------------------------------------------------------------
# hackstead (account) effects


@dataclass(frozen=True, slots=True)
class Land:
    pieces: int


def parse_hackstead_kind(raw: Any) -> Land:
    if not isinstance(raw, Mapping) or set(raw) != {"Land"}:
        raise ValueError(f"unknown hackstead advancement kind {raw!r}")
    value = raw["Land"]
    pieces = value["pieces"] if isinstance(value, Mapping) else value
    return Land(int(pieces))


@dataclass(frozen=True, slots=True)
class HacksteadSummary:
    land: int
    xp: int

    @classmethod
    def new(cls, unlocked: Sequence[Advancement]) -> HacksteadSummary:
        return cls(
            land=sum(tier.kind.pieces for tier in unlocked if isinstance(tier.kind, Land)),
            xp=sum(tier.xp for tier in unlocked),
        )

    @classmethod
    def filter_base(cls, advancement: Advancement) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"land": self.land, "xp": self.xp}


# ---------------------------------------------------------------------------
# plant effects


@dataclass(frozen=True, slots=True)
class Xp:
    multiplier: float


@dataclass(frozen=True, slots=True)
class YieldSpeed:
    multiplier: float


@dataclass(frozen=True, slots=True)
class YieldSize:
    multiplier: float


@dataclass(frozen=True, slots=True)
class Neighbor:
    inner: Any


@dataclass(frozen=True, slots=True)
class Yield:
    """Items a plant can spawn. Handles are names until the catalog resolves them."""

    resources: tuple[tuple[SpawnRate, Any], ...]


@dataclass(frozen=True, slots=True)
class Craft:
    recipes: tuple[Recipe[Any], ...]


_MULTIPLIER_KINDS: dict[str, type] = {"Xp": Xp, "YieldSpeed": YieldSpeed, "YieldSize": YieldSize}


def parse_plant_kind(raw: Any) -> Any:
    """Parse the externally tagged authoring form of a plant effect."""

    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise ValueError(f"plant advancement kind must be a single-key mapping, got {raw!r}")
    (tag, value), = raw.items()
    if tag in _MULTIPLIER_KINDS:
        return _MULTIPLIER_KINDS[tag](float(value))
    if tag == "Neighbor":
        return Neighbor(parse_plant_kind(value))
    if tag == "Yield":
        return Yield(tuple((SpawnRate.from_raw(rate), str(item)) for rate, item in value))
    if tag == "Craft":
        return Craft(tuple(Recipe.from_raw(recipe) for recipe in value))
    raise ValueError(f"unknown plant advancement kind {tag!r}")


def plant_kind_to_raw(kind: Any) -> dict[str, Any]:
    for tag, cls in _MULTIPLIER_KINDS.items():
        if isinstance(kind, cls):
            return {tag: kind.multiplier}
    if isinstance(kind, Neighbor):
        return {"Neighbor": plant_kind_to_raw(kind.inner)}
    if isinstance(kind, Yield):
        return {"Yield": [[rate.to_raw(), item] for rate, item in kind.resources]}
    if isinstance(kind, Craft):
        return {"Craft": [recipe.to_raw() for recipe in kind.recipes]}
    raise TypeError(f"not a plant advancement kind: {kind!r}")


def resolve_plant_kind(kind: Any, find: Callable[[str], int]) -> Any:
    """Return ``kind`` with every item name replaced by ``find(name)``.

    Lookup errors from ``find`` propagate, so an unknown item stops the
    catalog from loading.
    """

    if isinstance(kind, Neighbor):
        return Neighbor(resolve_plant_kind(kind.inner, find))
    if isinstance(kind, Yield):
        return Yield(tuple((rate, _resolve(item, find)) for rate, item in kind.resources))
    if isinstance(kind, Craft):
        return Craft(tuple(recipe.find_handles(lambda h: _resolve(h, find)) for recipe in kind.recipes))
    return kind


def _resolve(item: Any, find: Callable[[str], int]) -> int:
    return item if isinstance(item, int) else find(item)


def _runtime_find(name: str) -> int:
    from .catalog import get_catalog

    try:
        return get_catalog().find_possession_handle(name)
    except (UnknownArchetypeError, RuntimeError) as err:
        raise ResolutionError(f"couldn't find archetype for advancement effect: {err}", name=name) from err


@dataclass(frozen=True, slots=True)
class PlantSummary:
    xp: int = 0
    xp_multiplier: float = 1.0
    yield_speed_multiplier: float = 1.0
    yield_size_multiplier: float = 1.0
    yields: tuple[tuple[SpawnRate, int], ...] = ()
    recipes: tuple[Recipe[int], ...] = ()

    @classmethod
    def new(cls, unlocked: Sequence[Advancement]) -> PlantSummary:
        xp = 0
        xp_multiplier = 1.0
        yield_speed_multiplier = 1.0
        yield_size_multiplier = 1.0
        yields: list[tuple[SpawnRate, int]] = []
        recipes: list[Recipe[int]] = []

        for tier in unlocked:
            xp += tier.xp

            # neighbor effects apply here as if they were local
            kind = tier.kind.inner if isinstance(tier.kind, Neighbor) else tier.kind

            if isinstance(kind, Xp):
                xp_multiplier *= kind.multiplier
            elif isinstance(kind, YieldSpeed):
                yield_speed_multiplier *= kind.multiplier
            elif isinstance(kind, YieldSize):
                yield_size_multiplier *= kind.multiplier
            elif isinstance(kind, Yield):
                yields.extend((rate, _resolve(item, _runtime_find)) for rate, item in kind.resources)
            elif isinstance(kind, Craft):
                recipes.extend(
                    recipe.find_handles(lambda h: _resolve(h, _runtime_find)) for recipe in kind.recipes
                )
            elif isinstance(kind, Neighbor):
                _LOGGER.debug("Ignoring nested neighbor effect on %r", tier.title)

        # Size multipliers scale every yield, including ones unlocked before them.
        return cls(
            xp=xp,
            xp_multiplier=xp_multiplier,
            yield_speed_multiplier=yield_speed_multiplier,
            yield_size_multiplier=yield_size_multiplier,
            yields=tuple((rate.scaled(yield_size_multiplier), item) for rate, item in yields),
            recipes=tuple(recipes),
        )

    @classmethod
    def filter_base(cls, advancement: Advancement) -> bool:
        # neighbor bonuses are given out, not kept
        return not isinstance(advancement.kind, Neighbor)

    def to_dict(self) -> dict[str, Any]:
        return {
            "xp": self.xp,
            "xp_multiplier": self.xp_multiplier,
            "yield_speed_multiplier": self.yield_speed_multiplier,
            "yield_size_multiplier": self.yield_size_multiplier,
            "yields": [[rate.to_raw(), handle] for rate, handle in self.yields],
            "recipes": [recipe.to_raw() for recipe in self.recipes],
        }

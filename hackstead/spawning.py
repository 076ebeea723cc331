"""Weighted random outcomes: harvest spawn rates and crafting results.

Recipes and their outputs are generic over how items are referenced. Content
is authored with item *names* (``Recipe[str]``) and converted once, at catalog
load, into resolved archetype *handles* (``Recipe[int]``) through
:meth:`Recipe.find_handles`. Only resolved recipes reach the farming tick.
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .catalog import Archetype, Catalog
    from .possess import Possession

H = TypeVar("H")
T = TypeVar("T")

__all__ = [
    "SpawnRate",
    "RecipeMakes",
    "Just",
    "OneOf",
    "AllOf",
    "Recipe",
]

_RNG = random.Random()


@dataclass(frozen=True, slots=True)
class SpawnRate:
    """With probability ``guard`` spawn a count drawn from ``[lo, hi)``."""

    guard: float
    lo: float
    hi: float

    @classmethod
    def from_raw(cls, raw: Sequence[Any]) -> SpawnRate:
        """Build from the authored ``[guard, [lo, hi]]`` form."""

        guard, (lo, hi) = raw
        return cls(float(guard), float(lo), float(hi))

    def to_raw(self) -> list[Any]:
        return [self.guard, [self.lo, self.hi]]

    def scaled(self, multiplier: float) -> SpawnRate:
        return SpawnRate(
            min(1.0, self.guard * multiplier),
            self.lo * multiplier,
            self.hi * multiplier,
        )

    def gen_count(self, rng: random.Random | None = None) -> int:
        """Return how many items spawn.

        The fractional part of the drawn amount is itself the chance of
        rounding up, so the expected count keeps fractional precision.
        """

        rng = rng or _RNG
        if rng.random() >= self.guard:
            return 0
        chance = self.lo + (self.hi - self.lo) * rng.random()
        base = math.floor(chance)
        extra = 1 if rng.random() < chance - base else 0
        return int(base) + extra


class RecipeMakes(ABC, Generic[H]):
    """What a recipe produces. One of :class:`Just`, :class:`OneOf`, :class:`AllOf`."""

    __slots__ = ()

    @abstractmethod
    def any(self, rng: random.Random | None = None) -> H | None:
        """Return one possible output, randomly but properly weighted."""

    @abstractmethod
    def map_handles(self, fn: Callable[[H], T]) -> RecipeMakes[T]:
        ...

    @abstractmethod
    def handles(self) -> list[H]:
        ...

    @abstractmethod
    def to_raw(self) -> dict[str, Any]:
        ...

    def find_handles(self, find: Callable[[H], int]) -> RecipeMakes[int]:
        """Resolve names with ``find``; its lookup error propagates unchanged."""

        return self.map_handles(find)

    def lookup_handles(self, catalog: Catalog) -> RecipeMakes[Archetype] | None:
        """Map handles to archetypes, or ``None`` if any handle is stale."""

        found = [catalog.possession(h) for h in self.handles()]  # type: ignore[arg-type]
        if any(arch is None for arch in found):
            return None
        return self.map_handles(catalog.possession)  # type: ignore[arg-type,return-value]

    @staticmethod
    def from_raw(raw: Any) -> RecipeMakes[str]:
        """Parse the externally tagged authoring form.

        A bare string is shorthand for ``{"Just": [1, name]}``.
        """

        if isinstance(raw, str):
            return Just(1, raw)
        if not isinstance(raw, Mapping) or len(raw) != 1:
            raise ValueError(f"recipe output must be a single-key mapping, got {raw!r}")
        (tag, value), = raw.items()
        if tag == "Just":
            count, item = value
            return Just(int(count), str(item))
        if tag == "OneOf":
            return OneOf(tuple((float(w), str(item)) for w, item in value))
        if tag == "AllOf":
            return AllOf(tuple((int(c), str(item)) for c, item in value))
        raise ValueError(f"unknown recipe output kind {tag!r}")


@dataclass(frozen=True, slots=True)
class Just(RecipeMakes[H]):
    count: int
    item: H

    def any(self, rng: random.Random | None = None) -> H | None:
        return self.item

    def map_handles(self, fn: Callable[[H], T]) -> RecipeMakes[T]:
        return Just(self.count, fn(self.item))

    def handles(self) -> list[H]:
        return [self.item]

    def to_raw(self) -> dict[str, Any]:
        return {"Just": [self.count, self.item]}


@dataclass(frozen=True, slots=True)
class OneOf(RecipeMakes[H]):
    options: tuple[tuple[float, H], ...]

    def any(self, rng: random.Random | None = None) -> H | None:
        # Weights are not normalised. A list summing below one falls through
        # to ``None`` for the remainder of the draw.
        x = (rng or _RNG).random()
        for weight, item in self.options:
            x -= weight
            if x < 0:
                return item
        return None

    def map_handles(self, fn: Callable[[H], T]) -> RecipeMakes[T]:
        return OneOf(tuple((w, fn(item)) for w, item in self.options))

    def handles(self) -> list[H]:
        return [item for _, item in self.options]

    def to_raw(self) -> dict[str, Any]:
        return {"OneOf": [[w, item] for w, item in self.options]}


@dataclass(frozen=True, slots=True)
class AllOf(RecipeMakes[H]):
    """Counted outputs.

    Despite the name :meth:`any` picks exactly *one* of the listed outputs,
    weighted by its share of the total count. Existing content relies on this.
    """

    options: tuple[tuple[int, H], ...]

    def any(self, rng: random.Random | None = None) -> H | None:
        total = sum(count for count, _ in self.options)
        if total <= 0:
            return None
        return OneOf(tuple((count / total, item) for count, item in self.options)).any(rng)

    def map_handles(self, fn: Callable[[H], T]) -> RecipeMakes[T]:
        return AllOf(tuple((c, fn(item)) for c, item in self.options))

    def handles(self) -> list[H]:
        return [item for _, item in self.options]

    def to_raw(self) -> dict[str, Any]:
        return {"AllOf": [[c, item] for c, item in self.options]}


@dataclass(frozen=True, slots=True)
class Recipe(Generic[H]):
    """A crafting recipe a plant can run once the matching tier is unlocked."""

    needs: tuple[tuple[int, H], ...]
    makes: RecipeMakes[H]
    time: float
    destroys_plant: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Recipe[str]:
        return cls(
            needs=tuple((int(count), str(item)) for count, item in raw.get("needs", ())),
            makes=RecipeMakes.from_raw(raw["makes"]),
            time=float(raw["time"]),
            destroys_plant=bool(raw.get("destroys_plant", False)),
        )

    def to_raw(self) -> dict[str, Any]:
        return {
            "needs": [[count, item] for count, item in self.needs],
            "makes": self.makes.to_raw(),
            "destroys_plant": self.destroys_plant,
            "time": self.time,
        }

    def map_handles(self, fn: Callable[[H], T]) -> Recipe[T]:
        return Recipe(
            needs=tuple((count, fn(item)) for count, item in self.needs),
            makes=self.makes.map_handles(fn),
            time=self.time,
            destroys_plant=self.destroys_plant,
        )

    def handles(self) -> list[H]:
        return [item for _, item in self.needs] + self.makes.handles()

    def find_handles(self, find: Callable[[H], int]) -> Recipe[int]:
        return self.map_handles(find)

    def lookup_handles(self, catalog: Catalog) -> Recipe[Archetype] | None:
        if any(catalog.possession(h) is None for h in self.handles()):  # type: ignore[arg-type]
            return None
        return self.map_handles(catalog.possession)  # type: ignore[arg-type,return-value]

    def satisfies(self, inventory: Iterable[Possession]) -> bool:
        """Return ``True`` when ``inventory`` holds every needed item."""

        have = Counter(p.archetype_handle for p in inventory)
        return all(count <= have[handle] for count, handle in self.needs)

"""Stored game entities: profiles, tiles, plants and inventory items.

Entities hold archetype handles while in memory. Their documents (see the
``to_dict``/``from_dict`` pairs) hold archetype names, so a document written
against one catalog still loads after the content files are reordered.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .advancement import Advancement
from .catalog import Archetype, ArchetypeHandle, Catalog, PlantArchetype, get_catalog
from .const import Category
from .exceptions import UnknownArchetypeError
from .spawning import Recipe
from .summaries import HacksteadSummary, Neighbor, PlantSummary
from .utils import format_rfc3339, parse_rfc3339

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "Possession",
    "Craft",
    "Plant",
    "Tile",
    "Profile",
    "Hacksteader",
    "plant_extra_advancements",
]


def _ts(value: Any, default: datetime | None = None) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str) and value:
        return parse_rfc3339(value)
    if default is not None:
        return default
    raise ValueError(f"expected a timestamp, got {value!r}")


def _possession_name(catalog: Catalog, handle: ArchetypeHandle) -> str:
    arch = catalog.possession(handle)
    if arch is None:
        raise UnknownArchetypeError(str(handle), category="possession archetype handle")
    return arch.name


@dataclass(slots=True)
class Possession:
    """One inventory item owned by ``steader``."""

    id: str
    archetype_handle: ArchetypeHandle
    steader: str

    def archetype(self, catalog: Catalog | None = None) -> Archetype | None:
        return (catalog or get_catalog()).possession(self.archetype_handle)

    def to_dict(self, catalog: Catalog | None = None) -> dict[str, Any]:
        catalog = catalog or get_catalog()
        return {
            "id": self.id,
            "archetype": _possession_name(catalog, self.archetype_handle),
            "steader": self.steader,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], catalog: Catalog | None = None) -> Possession:
        catalog = catalog or get_catalog()
        return cls(
            id=str(payload["id"]),
            archetype_handle=catalog.find_possession_handle(payload["archetype"]),
            steader=str(payload["steader"]),
        )


@dataclass(slots=True)
class Craft:
    """A recipe a plant is currently working on."""

    until_finish: float
    recipe: Recipe[int]

    def to_dict(self, catalog: Catalog) -> dict[str, Any]:
        return {
            "until_finish": self.until_finish,
            "recipe": self.recipe.map_handles(lambda h: _possession_name(catalog, h)).to_raw(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], catalog: Catalog) -> Craft:
        return cls(
            until_finish=float(payload["until_finish"]),
            recipe=Recipe.from_raw(payload["recipe"]).find_handles(catalog.find_possession_handle),
        )


@dataclass(slots=True)
class Plant:
    archetype_handle: ArchetypeHandle
    xp: int = 0
    until_yield: float = 0.0
    craft: Craft | None = None

    @classmethod
    def new(cls, archetype_handle: ArchetypeHandle, catalog: Catalog | None = None) -> Plant:
        arch = (catalog or get_catalog()).plant(archetype_handle)
        if arch is None:
            raise UnknownArchetypeError(str(archetype_handle), category="plant archetype handle")
        return cls(archetype_handle=archetype_handle, until_yield=arch.base_yield_duration)

    def archetype(self, catalog: Catalog | None = None) -> PlantArchetype:
        arch = (catalog or get_catalog()).plant(self.archetype_handle)
        if arch is None:
            raise UnknownArchetypeError(str(self.archetype_handle), category="plant archetype handle")
        return arch

    @property
    def name(self) -> str:
        return self.archetype().name

    def increment_xp(self, catalog: Catalog | None = None) -> Advancement | None:
        self.xp, crossed = self.archetype(catalog).advancements.increment_xp(self.xp)
        return crossed

    def summary(
        self,
        extra_advancements: Iterable[Advancement] = (),
        catalog: Catalog | None = None,
    ) -> PlantSummary:
        return self.archetype(catalog).advancements.sum(self.xp, extra_advancements)

    def to_dict(self, catalog: Catalog | None = None) -> dict[str, Any]:
        catalog = catalog or get_catalog()
        return {
            "archetype": self.archetype(catalog).name,
            "xp": self.xp,
            "until_yield": self.until_yield,
            "craft": self.craft.to_dict(catalog) if self.craft else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], catalog: Catalog | None = None) -> Plant:
        catalog = catalog or get_catalog()
        handle = catalog.find_plant_handle(payload["archetype"])
        craft = payload.get("craft")
        return cls(
            archetype_handle=handle,
            xp=int(payload.get("xp", 0)),
            until_yield=float(payload.get("until_yield", catalog.plant_archetypes[handle].base_yield_duration)),
            craft=Craft.from_dict(craft, catalog) if craft else None,
        )


@dataclass(slots=True)
class Tile:
    """A piece of land, possibly with a plant growing on it."""

    id: str
    steader: str
    acquired: datetime
    plant: Plant | None = None

    def to_dict(self, catalog: Catalog | None = None) -> dict[str, Any]:
        return {
            "cat": Category.LAND.value,
            "id": self.id,
            "steader": self.steader,
            "acquired": format_rfc3339(self.acquired),
            "plant": self.plant.to_dict(catalog) if self.plant else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], catalog: Catalog | None = None) -> Tile:
        plant = payload.get("plant")
        return cls(
            id=str(payload["id"]),
            steader=str(payload["steader"]),
            acquired=_ts(payload.get("acquired"), datetime.fromtimestamp(0, UTC)),
            plant=Plant.from_dict(plant, catalog) if plant else None,
        )


@dataclass(slots=True)
class Profile:
    """Account-level progress. ``xp`` only ever grows."""

    id: str
    xp: int = 0
    joined: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_active: datetime = field(default_factory=lambda: datetime.now(UTC))
    land: list[str] = field(default_factory=list)
    inventory: list[Possession] = field(default_factory=list)

    @classmethod
    def new(cls, user_id: str, now: datetime | None = None) -> Profile:
        now = now or datetime.now(UTC)
        return cls(id=user_id, joined=now, last_active=now)

    def increment_xp(self, catalog: Catalog | None = None) -> Advancement | None:
        self.xp, crossed = (catalog or get_catalog()).profile_advancements.increment_xp(self.xp)
        return crossed

    def summary(self, catalog: Catalog | None = None) -> HacksteadSummary:
        return (catalog or get_catalog()).profile_advancements.sum(self.xp)

    def touch(self, at: datetime) -> None:
        """Move ``last_active`` forward to ``at``. Older stamps are ignored."""

        if at > self.last_active:
            self.last_active = at

    def to_dict(self, catalog: Catalog | None = None) -> dict[str, Any]:
        return {
            "cat": Category.PROFILE.value,
            "id": self.id,
            "xp": self.xp,
            "joined": format_rfc3339(self.joined),
            "last_active": format_rfc3339(self.last_active),
            "land": list(self.land),
            "inventory": [item.to_dict(catalog) for item in self.inventory],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], catalog: Catalog | None = None) -> Profile:
        joined = _ts(payload.get("joined"), datetime.fromtimestamp(0, UTC))
        return cls(
            id=str(payload["id"]),
            xp=int(payload.get("xp", 0)),
            joined=joined,
            last_active=_ts(payload.get("last_active"), joined),
            land=[str(t) for t in payload.get("land", ())],
            inventory=[Possession.from_dict(p, catalog) for p in payload.get("inventory", ())],
        )


@dataclass(slots=True)
class Hacksteader:
    """Everything the farm loop needs for one account."""

    user_id: str
    profile: Profile
    land: list[Tile] = field(default_factory=list)

    def planted(self) -> Iterator[tuple[Plant, Tile]]:
        for tile in self.land:
            if tile.plant is not None:
                yield tile.plant, tile


def plant_extra_advancements(
    tile: Tile,
    hacksteader: Hacksteader,
    catalog: Catalog | None = None,
) -> list[Advancement]:
    """Tiers granted to the plant on ``tile`` by things around it.

    That is the unlocked :class:`Neighbor` tiers of every *other* plant on the
    hackstead, followed by the ``plant_effects`` of inventory items aimed at
    this plant's species.
    """

    catalog = catalog or get_catalog()
    if tile.plant is None:
        return []
    species = tile.plant.archetype(catalog).name

    extra: list[Advancement] = []
    for other, other_tile in hacksteader.planted():
        if other_tile.id == tile.id:
            continue
        ladder = other.archetype(catalog).advancements
        extra.extend(adv for adv in ladder.unlocked(other.xp) if isinstance(adv.kind, Neighbor))

    for item in hacksteader.profile.inventory:
        arch = item.archetype(catalog)
        if arch is None:
            _LOGGER.debug("Inventory item %s has a stale archetype handle", item.id)
            continue
        effects = arch.plant_effects
        if effects is not None and effects[0] == species:
            extra.append(effects[1])
    return extra

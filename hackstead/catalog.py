"""Process-wide, read-only registry of archetype definitions.

The catalog is built once at startup from the content files in the data
directory (see :func:`load_catalog`) and installed with :func:`init_catalog`.
It is never torn down: every task that needs an archetype reads the same
immutable instance through :func:`get_catalog`.

Archetypes are addressed at runtime by *handle*, the index into
:attr:`Catalog.plant_archetypes` or :attr:`Catalog.possession_archetypes`.
Handles are only meaningful against the catalog that produced them, so stored
documents always carry archetype names.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .advancement import Advancement, AdvancementSet, validate_ladder
from .const import (
    HACKSTEAD_ADVANCEMENTS_FILE,
    PLANT_ARCHETYPES_FILE,
    POSSESSION_ARCHETYPES_FILE,
    SPECIAL_USERS_FILE,
    Category,
)
from .exceptions import ConfigError, LadderError, UnknownArchetypeError
from .schema import (
    LADDER_SCHEMA,
    PLANT_ARCHETYPES_SCHEMA,
    POSSESSION_ARCHETYPES_SCHEMA,
    SPECIAL_USERS_SCHEMA,
    validate_content,
)
from .summaries import (
    HacksteadSummary,
    PlantSummary,
    parse_hackstead_kind,
    parse_plant_kind,
    resolve_plant_kind,
)
from .utils import PathType, content_file, load_data

_LOGGER = logging.getLogger(__name__)

ArchetypeHandle = int

__all__ = [
    "ArchetypeHandle",
    "Archetype",
    "GotchiArchetype",
    "SeedArchetype",
    "KeepsakeArchetype",
    "TimeIncrease",
    "LandUnlock",
    "PlantArchetype",
    "Catalog",
    "load_catalog",
    "init_catalog",
    "get_catalog",
    "reset_catalog",
]


@dataclass(frozen=True, slots=True)
class TimeIncrease:
    extra_cycles: int
    duration_cycles: int


@dataclass(frozen=True, slots=True)
class LandUnlock:
    requires_xp: bool


@dataclass(frozen=True, slots=True)
class GotchiArchetype:
    base_happiness: int
    plant_effects: tuple[str, Advancement] | None = None


@dataclass(frozen=True, slots=True)
class SeedArchetype:
    grows_into: str


@dataclass(frozen=True, slots=True)
class KeepsakeArchetype:
    item_application_effect: TimeIncrease | None = None
    unlocks_land: LandUnlock | None = None
    plant_effects: tuple[str, Advancement] | None = None


@dataclass(frozen=True, slots=True)
class Archetype:
    """An item definition: gotchi, seed or keepsake."""

    name: str
    description: str
    kind: GotchiArchetype | SeedArchetype | KeepsakeArchetype

    @property
    def category(self) -> Category:
        return Category.GOTCHI if isinstance(self.kind, GotchiArchetype) else Category.MISC

    @property
    def keepsake(self) -> KeepsakeArchetype | None:
        return self.kind if isinstance(self.kind, KeepsakeArchetype) else None

    @property
    def plant_effects(self) -> tuple[str, Advancement] | None:
        if isinstance(self.kind, SeedArchetype):
            return None
        return self.kind.plant_effects


@dataclass(frozen=True, slots=True)
class PlantArchetype:
    name: str
    base_yield_duration: float
    advancements: AdvancementSet[PlantSummary]


@dataclass(frozen=True, slots=True)
class Catalog:
    profile_advancements: AdvancementSet[HacksteadSummary]
    plant_archetypes: tuple[PlantArchetype, ...]
    possession_archetypes: tuple[Archetype, ...]
    special_users: tuple[str, ...] = ()
    _plant_index: dict[str, int] = field(init=False, repr=False, compare=False)
    _possession_index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_plant_index", _index(self.plant_archetypes, "plant"))
        object.__setattr__(self, "_possession_index", _index(self.possession_archetypes, "possession"))

    # ------------------------------------------------------------------
    def find_plant(self, name: str) -> PlantArchetype:
        return self.plant_archetypes[self.find_plant_handle(name)]

    def find_plant_handle(self, name: str) -> ArchetypeHandle:
        try:
            return self._plant_index[name]
        except KeyError:
            raise UnknownArchetypeError(name, category="plant archetype") from None

    def find_possession(self, name: str) -> Archetype:
        return self.possession_archetypes[self.find_possession_handle(name)]

    def find_possession_handle(self, name: str) -> ArchetypeHandle:
        try:
            return self._possession_index[name]
        except KeyError:
            raise UnknownArchetypeError(name, category="possession archetype") from None

    def plant(self, handle: ArchetypeHandle) -> PlantArchetype | None:
        if 0 <= handle < len(self.plant_archetypes):
            return self.plant_archetypes[handle]
        return None

    def possession(self, handle: ArchetypeHandle) -> Archetype | None:
        if 0 <= handle < len(self.possession_archetypes):
            return self.possession_archetypes[handle]
        return None

    # ------------------------------------------------------------------
    @classmethod
    def from_raw(
        cls,
        *,
        hackstead_advancements: Any,
        plant_archetypes: Any,
        possession_archetypes: Any,
        special_users: Any = (),
    ) -> Catalog:
        """Validate authored content and build a catalog.

        Every item and plant name referenced anywhere in the content is
        resolved here. An unknown name raises :class:`UnknownArchetypeError`
        and a broken ladder raises :class:`LadderError`, both
        :class:`ConfigError`.
        """

        ladder = validate_content(LADDER_SCHEMA, hackstead_advancements, source="hackstead advancements")
        plants_raw = validate_content(PLANT_ARCHETYPES_SCHEMA, list(plant_archetypes), source="plant archetypes")
        items_raw = validate_content(
            POSSESSION_ARCHETYPES_SCHEMA, list(possession_archetypes), source="possession archetypes"
        )
        users = validate_content(SPECIAL_USERS_SCHEMA, list(special_users or ()), source="special users")

        item_index = _index(items_raw, "possession")
        plant_names = _index(plants_raw, "plant")

        def find_item(name: str) -> int:
            try:
                return item_index[name]
            except KeyError:
                raise UnknownArchetypeError(name, category="possession archetype") from None

        def plant_advancement(raw: Mapping[str, Any], where: str) -> Advancement:
            return _advancement(raw, lambda k: resolve_plant_kind(parse_plant_kind(k), find_item), where)

        plants = tuple(
            PlantArchetype(
                name=raw["name"],
                base_yield_duration=float(raw["base_yield_duration"]),
                advancements=_ladder(raw["advancements"], PlantSummary, plant_advancement, raw["name"]),
            )
            for raw in plants_raw
        )

        def plant_effects(raw: Sequence[Any] | None, owner: str) -> tuple[str, Advancement] | None:
            if raw is None:
                return None
            target, adv = raw
            if target not in plant_names:
                raise UnknownArchetypeError(target, category="plant archetype")
            return target, plant_advancement(adv, f"plant effects of {owner!r}")

        items: list[Archetype] = []
        for raw in items_raw:
            (tag, body), = raw["kind"].items()
            if tag == "Gotchi":
                kind: Any = GotchiArchetype(
                    base_happiness=body["base_happiness"],
                    plant_effects=plant_effects(body.get("plant_effects"), raw["name"]),
                )
            elif tag == "Seed":
                if body["grows_into"] not in plant_names:
                    raise ConfigError(
                        f"seed archetype {raw['name']!r} claims it grows into unknown plant "
                        f"archetype {body['grows_into']!r}"
                    )
                kind = SeedArchetype(grows_into=body["grows_into"])
            else:
                effect = body.get("item_application_effect")
                unlock = body.get("unlocks_land")
                kind = KeepsakeArchetype(
                    item_application_effect=TimeIncrease(**effect["TimeIncrease"]) if effect else None,
                    unlocks_land=LandUnlock(**unlock) if unlock else None,
                    plant_effects=plant_effects(body.get("plant_effects"), raw["name"]),
                )
            items.append(Archetype(name=raw["name"], description=raw.get("description", ""), kind=kind))

        profile_ladder = _ladder(
            ladder,
            HacksteadSummary,
            lambda adv, where: _advancement(adv, parse_hackstead_kind, where),
            "hackstead",
        )

        return cls(
            profile_advancements=profile_ladder,
            plant_archetypes=plants,
            possession_archetypes=tuple(items),
            special_users=tuple(users),
        )


def _index(entries: Iterable[Any], category: str) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, entry in enumerate(entries):
        name = entry["name"] if isinstance(entry, Mapping) else entry.name
        if name in index:
            raise ConfigError(f"duplicate {category} archetype {name!r}")
        index[name] = position
    return index


def _advancement(raw: Mapping[str, Any], parse_kind: Callable[[Any], Any], where: str) -> Advancement:
    try:
        kind = parse_kind(raw["kind"])
    except (ValueError, TypeError, KeyError) as err:
        raise ConfigError(f"{where}: advancement {raw.get('title')!r} has an invalid kind: {err}") from err
    return Advancement(
        kind=kind,
        xp=int(raw["xp"]),
        art=raw.get("art", ""),
        title=raw["title"],
        description=raw.get("description", ""),
        achiever_title=raw.get("achiever_title", ""),
    )


def _ladder(
    raw: Any,
    summary_type: type,
    build: Callable[[Mapping[str, Any], str], Advancement],
    name: str,
) -> AdvancementSet:
    if isinstance(raw, Mapping):
        base = build(raw["base"], name)
        rest = [build(adv, name) for adv in raw.get("rest", ())]
    else:
        tiers = [build(adv, name) for adv in raw]
        base_index = next((i for i, adv in enumerate(tiers) if adv.xp == 0), None)
        if base_index is None:
            raise LadderError(f"{name}: missing starting advancement (one with 0xp)")
        base = tiers.pop(base_index)
        rest = tiers
    validate_ladder(base, rest, name=name)
    return AdvancementSet(base=base, rest=tuple(rest), summary_type=summary_type)


def load_catalog(data_dir: PathType | None = None) -> Catalog:
    """Read every content file from ``data_dir`` and build a :class:`Catalog`."""

    def read(stem: str, *, required: bool = True) -> Any:
        path = content_file(stem, data_dir)
        if path is None:
            if required:
                raise ConfigError(f"missing content file {stem!r} in {data_dir or 'the data directory'}")
            return ()
        try:
            return load_data(path)
        except ValueError as err:
            raise ConfigError(str(err)) from err

    catalog = Catalog.from_raw(
        hackstead_advancements=read(HACKSTEAD_ADVANCEMENTS_FILE),
        plant_archetypes=read(PLANT_ARCHETYPES_FILE),
        possession_archetypes=read(POSSESSION_ARCHETYPES_FILE),
        special_users=read(SPECIAL_USERS_FILE, required=False),
    )
    _LOGGER.info(
        "Loaded %d plant and %d possession archetypes",
        len(catalog.plant_archetypes),
        len(catalog.possession_archetypes),
    )
    return catalog


_CATALOG: Catalog | None = None


def init_catalog(source: Catalog | PathType | None = None, *, replace: bool = False) -> Catalog:
    """Install the process-wide catalog and return it.

    ``source`` is a prebuilt catalog or a data directory. Calling this twice
    is an error unless ``replace`` is set.
    """

    global _CATALOG
    if _CATALOG is not None and not replace:
        raise RuntimeError("archetype catalog is already initialised")
    catalog = source if isinstance(source, Catalog) else load_catalog(source)
    _CATALOG = catalog
    return catalog


def get_catalog() -> Catalog:
    if _CATALOG is None:
        raise RuntimeError("archetype catalog has not been initialised")
    return _CATALOG


def reset_catalog() -> None:
    """Drop the process-wide catalog. Only tests have a reason to call this."""

    global _CATALOG
    _CATALOG = None

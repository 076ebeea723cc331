"""Progression model and farming engine for the Hackstead game."""

from .advancement import Advancement, AdvancementSet, AdvancementSum, validate_ladder
from .catalog import (
    Archetype,
    ArchetypeHandle,
    Catalog,
    PlantArchetype,
    get_catalog,
    init_catalog,
    load_catalog,
    reset_catalog,
)
from .exceptions import (
    ConfigError,
    HacksteadError,
    LadderError,
    ResolutionError,
    StoreError,
    UnknownArchetypeError,
)
from .possess import Craft, Hacksteader, Plant, Possession, Profile, Tile, plant_extra_advancements
from .spawning import AllOf, Just, OneOf, Recipe, RecipeMakes, SpawnRate
from .summaries import HacksteadSummary, PlantSummary

__version__ = "0.1.0"

__all__ = [
    "Advancement",
    "AdvancementSet",
    "AdvancementSum",
    "validate_ladder",
    "Archetype",
    "ArchetypeHandle",
    "Catalog",
    "PlantArchetype",
    "get_catalog",
    "init_catalog",
    "load_catalog",
    "reset_catalog",
    "HacksteadError",
    "ConfigError",
    "UnknownArchetypeError",
    "LadderError",
    "ResolutionError",
    "StoreError",
    "Possession",
    "Craft",
    "Plant",
    "Tile",
    "Profile",
    "Hacksteader",
    "plant_extra_advancements",
    "SpawnRate",
    "RecipeMakes",
    "Just",
    "OneOf",
    "AllOf",
    "Recipe",
    "HacksteadSummary",
    "PlantSummary",
]

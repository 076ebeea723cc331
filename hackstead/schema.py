"""JSON schemas for authored archetype content.

These check the *shape* of the JSON/YAML files before the catalog builds
anything from them. Cross references (item names, plant names) are checked by
:mod:`hackstead.catalog` once every archetype is known. Optional keys are not
filled in here; readers supply their own defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jsonschema import Draft202012Validator

from .exceptions import ConfigError

NAME_SCHEMA: dict[str, Any] = {"type": "string", "minLength": 1}

ADVANCEMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["kind", "xp", "title"],
    "properties": {
        "kind": {"type": "object", "minProperties": 1, "maxProperties": 1},
        "xp": {"type": "integer", "minimum": 0},
        "art": {"type": "string"},
        "title": {"type": "string"},
        "description": {"type": "string"},
        "achiever_title": {"type": "string"},
    },
}

# Either ``{"base": ..., "rest": [...]}`` or a flat list holding one 0xp tier.
LADDER_SCHEMA: dict[str, Any] = {
    "oneOf": [
        {
            "type": "object",
            "required": ["base"],
            "properties": {
                "base": ADVANCEMENT_SCHEMA,
                "rest": {"type": "array", "items": ADVANCEMENT_SCHEMA},
            },
            "additionalProperties": False,
        },
        {"type": "array", "items": ADVANCEMENT_SCHEMA, "minItems": 1},
    ]
}

PLANT_ARCHETYPE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["name", "base_yield_duration", "advancements"],
    "properties": {
        "name": NAME_SCHEMA,
        "base_yield_duration": {"type": "number", "exclusiveMinimum": 0},
        "advancements": LADDER_SCHEMA,
    },
}

PLANT_EFFECTS_SCHEMA: dict[str, Any] = {
    "oneOf": [
        {"type": "null"},
        {
            "type": "array",
            "prefixItems": [NAME_SCHEMA, ADVANCEMENT_SCHEMA],
            "minItems": 2,
            "maxItems": 2,
        },
    ]
}

_COUNT = {"type": "integer", "minimum": 0}

GOTCHI_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["base_happiness"],
    "properties": {
        "base_happiness": _COUNT,
        "plant_effects": PLANT_EFFECTS_SCHEMA,
    },
}

SEED_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["grows_into"],
    "properties": {"grows_into": NAME_SCHEMA},
}

KEEPSAKE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "item_application_effect": {
            "oneOf": [
                {"type": "null"},
                {
                    "type": "object",
                    "required": ["TimeIncrease"],
                    "properties": {
                        "TimeIncrease": {
                            "type": "object",
                            "required": ["extra_cycles", "duration_cycles"],
                            "properties": {"extra_cycles": _COUNT, "duration_cycles": _COUNT},
                        }
                    },
                },
            ]
        },
        "unlocks_land": {
            "oneOf": [
                {"type": "null"},
                {
                    "type": "object",
                    "required": ["requires_xp"],
                    "properties": {"requires_xp": {"type": "boolean"}},
                },
            ]
        },
        "plant_effects": PLANT_EFFECTS_SCHEMA,
    },
}

POSSESSION_ARCHETYPE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["name", "kind"],
    "properties": {
        "name": NAME_SCHEMA,
        "description": {"type": "string"},
        "kind": {
            "oneOf": [
                {
                    "type": "object",
                    "required": ["Gotchi"],
                    "properties": {"Gotchi": GOTCHI_SCHEMA},
                    "maxProperties": 1,
                },
                {
                    "type": "object",
                    "required": ["Seed"],
                    "properties": {"Seed": SEED_SCHEMA},
                    "maxProperties": 1,
                },
                {
                    "type": "object",
                    "required": ["Keepsake"],
                    "properties": {"Keepsake": KEEPSAKE_SCHEMA},
                    "maxProperties": 1,
                },
            ]
        },
    },
}

PLANT_ARCHETYPES_SCHEMA: dict[str, Any] = {"type": "array", "items": PLANT_ARCHETYPE_SCHEMA}
POSSESSION_ARCHETYPES_SCHEMA: dict[str, Any] = {"type": "array", "items": POSSESSION_ARCHETYPE_SCHEMA}
SPECIAL_USERS_SCHEMA: dict[str, Any] = {"type": "array", "items": NAME_SCHEMA}


def schema_errors(schema: Mapping[str, Any], payload: Any) -> list[str]:
    """Return a list of human-readable errors (empty if valid)."""

    validator = Draft202012Validator(schema)
    issues: list[str] = []
    for err in validator.iter_errors(payload):
        location = ".".join(str(part) for part in err.absolute_path) or "<root>"
        issues.append(f"{location}: {err.message}")
    return issues


def validate_content(schema: Mapping[str, Any], payload: Any, *, source: str) -> Any:
    """Return ``payload`` unchanged if it matches ``schema``, else raise :class:`ConfigError`."""

    issues = schema_errors(schema, payload)
    if issues:
        raise ConfigError(f"invalid {source}: " + "; ".join(issues))
    return payload

"""Exception types shared by the catalog, aggregation and farming layers."""

from __future__ import annotations


class HacksteadError(Exception):
    """Base class for every error raised by :mod:`hackstead`."""


class ConfigError(HacksteadError):
    """Archetype content is invalid. Raised while loading the catalog."""


class UnknownArchetypeError(ConfigError, LookupError):
    """A name does not match any archetype in the catalog."""

    def __init__(self, name: str, *, category: str = "archetype") -> None:
        super().__init__(f"no {category} by the name of {name!r}")
        self.name = name
        self.category = category


class LadderError(ConfigError):
    """An advancement ladder is missing its base tier or is not monotonic."""


class ResolutionError(HacksteadError):
    """An advancement effect references an item that cannot be resolved."""

    def __init__(self, message: str, *, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class StoreError(HacksteadError):
    """A store read, write or timeout. The current tick is abandoned."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason

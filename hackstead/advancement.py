"""Tiered, experience-gated advancement ladders.

An :class:`AdvancementSet` is one complete ladder for one subject kind. Each
tier stores the *cumulative* xp at which it unlocks, so lookups are "the last
tier whose threshold has been reached". The base tier always sits at zero.

Folding a set of unlocked tiers into effective stats is delegated to the
ladder's summary type, anything implementing :class:`AdvancementSum`.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from .exceptions import LadderError

__all__ = [
    "Advancement",
    "AdvancementSet",
    "AdvancementSum",
    "validate_ladder",
]

S = TypeVar("S", bound="AdvancementSum")


class AdvancementSum(Protocol):
    """Capability every effective-stats summary must provide."""

    @classmethod
    def new(cls: type[S], unlocked: Sequence[Advancement]) -> S:
        """Fold ``unlocked`` tiers, in order, into a summary."""
        ...

    @classmethod
    def filter_base(cls, advancement: Advancement) -> bool:
        """Return whether ``advancement`` counts toward its holder's own stats."""
        ...


@dataclass(frozen=True, slots=True)
class Advancement:
    """A single tier of a ladder."""

    kind: Any
    xp: int
    art: str
    title: str
    description: str
    achiever_title: str


def validate_ladder(base: Advancement, rest: Sequence[Advancement], *, name: str = "ladder") -> None:
    """Reject ladders that break the lookup invariants.

    Raises :class:`LadderError` when the base tier is not at zero xp or when
    the thresholds of ``rest`` are not strictly increasing above it.
    """

    if base.xp != 0:
        raise LadderError(f"{name}: base advancement {base.title!r} must have 0xp, has {base.xp}")
    previous = base
    for tier in rest:
        if tier.xp <= previous.xp:
            raise LadderError(
                f"{name}: advancement {tier.title!r} at {tier.xp}xp does not come after "
                f"{previous.title!r} at {previous.xp}xp"
            )
        previous = tier


@dataclass(frozen=True, slots=True)
class AdvancementSet(Generic[S]):
    base: Advancement
    rest: tuple[Advancement, ...]
    summary_type: type[S]

    def __post_init__(self) -> None:
        validate_ladder(self.base, self.rest)

    @property
    def thresholds(self) -> list[int]:
        return [tier.xp for tier in self.all()]

    def __len__(self) -> int:
        return len(self.rest) + 1

    def all(self) -> Iterator[Advancement]:
        yield self.base
        yield from self.rest

    def get(self, index: int) -> Advancement | None:
        if index == 0:
            return self.base
        if 0 < index <= len(self.rest):
            return self.rest[index - 1]
        return None

    def current_position(self, xp: int) -> int:
        """Index of the last tier whose cumulative threshold is ``<= xp``."""

        return max(bisect_right(self.thresholds, xp) - 1, 0)

    def current(self, xp: int) -> Advancement:
        return self.get(self.current_position(xp)) or self.base

    def next(self, xp: int) -> Advancement | None:
        """The tier after :meth:`current`, ``None`` once the ladder is complete."""

        return self.get(self.current_position(xp) + 1)

    def unlocked(self, xp: int) -> list[Advancement]:
        return [self.base, *self.rest[: self.current_position(xp)]]

    def increment_xp(self, xp: int) -> tuple[int, Advancement | None]:
        """Add one xp and report the newly reached tier, if any.

        The second element is only set when this increment moved
        :meth:`current` to a different tier.
        """

        before = self.current_position(xp)
        xp += 1
        after = self.current_position(xp)
        return xp, (self.get(after) if after != before else None)

    def progress(self, xp: int) -> tuple[int, int] | None:
        """Return ``(have, need)`` xp toward the next tier.

        ``None`` when there is no next tier.
        """

        nxt = self.next(xp)
        if nxt is None:
            return None
        current = self.current(xp)
        return xp - current.xp, nxt.xp - current.xp

    def sum(self, xp: int, extra_advancements: Iterable[Advancement] = ()) -> S:
        """Aggregate the unlocked tiers that count toward the holder, plus extras."""

        own = [tier for tier in self.unlocked(xp) if self.summary_type.filter_base(tier)]
        return self.summary_type.new([*own, *extra_advancements])

    def raw_sum(self, xp: int) -> S:
        return self.summary_type.new(self.unlocked(xp))

    def max(self, extra_advancements: Iterable[Advancement] = ()) -> S:
        """Aggregate as if the whole ladder were unlocked."""

        own = [tier for tier in self.all() if self.summary_type.filter_base(tier)]
        return self.summary_type.new([*own, *extra_advancements])

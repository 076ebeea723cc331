"""The farm loop.

Every ``tick_seconds`` the scheduler works out how many whole cycles have
passed since the stored checkpoint, replays that many cycles against every
active account and writes the results back together with the advanced
checkpoint. The checkpoint only moves when that write succeeds, so a failed
tick is simply recomputed from the same starting point on the next boundary.

Replays are deterministic. Random draws use a generator seeded from the
checkpoint and the tile, and spawned items get ids derived from the same
values, so recomputing a tick produces the same documents.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from ..catalog import ArchetypeHandle, Catalog, get_catalog
from ..exceptions import HacksteadError, ResolutionError
from ..log_utils import warn_once
from ..possess import Hacksteader, Plant, Possession, Profile, Tile, plant_extra_advancements
from ..summaries import PlantSummary
from ..utils import format_rfc3339
from .activity import ActivityEvent, ActivityFeed
from .notify import (
    LoggingNotifier,
    Notification,
    NotificationSink,
    hackstead_notification,
    plant_notification,
)
from .options import FarmingConfig
from .store import FarmStore, fetch_hacksteader

_LOGGER = logging.getLogger(__name__)

__all__ = ["FarmScheduler", "TickResult"]

REASON_IDLE = "idle"
REASON_NOT_DUE = "not_due"
REASON_FETCH_FAILED = "fetch_failed"
REASON_RESOLUTION_FAILED = "resolution_failed"
REASON_WRITE_FAILED = "write_failed"

_ITEM_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "hackstead:farm:spawned")


@dataclass(slots=True)
class TickResult:
    elapsed: int = 0
    advanced: bool = False
    checkpoint: datetime | None = None
    notifications: list[Notification] = field(default_factory=list)
    reason: str | None = None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FarmScheduler:
    """Owns the active-account set and the in-memory checkpoint."""

    def __init__(
        self,
        store: FarmStore,
        catalog: Catalog | None = None,
        *,
        config: FarmingConfig | None = None,
        feed: ActivityFeed | None = None,
        notifier: NotificationSink | None = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog or get_catalog()
        self.config = config or FarmingConfig()
        self.feed = feed or ActivityFeed()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.logger = logger or _LOGGER
        # user id -> newest activity stamp not yet written to the profile
        self.active: dict[str, datetime | None] = {}
        self.checkpoint: datetime | None = None
        self.last_result: TickResult | None = None
        self.last_success_at: datetime | None = None
        self.last_error: str | None = None

    # ------------------------------------------------------------------
    @property
    def cycle(self) -> timedelta:
        return timedelta(seconds=self.config.cycle_seconds)

    def mark_active(self, user_id: str, at: datetime | None = None) -> None:
        self.feed.mark_active(user_id, at)

    async def load_checkpoint(self, now: datetime | None = None) -> datetime:
        """Read the checkpoint from the store, seeding it when there is none."""

        async with asyncio.timeout(self.config.store_timeout):
            checkpoint = await self.store.get_checkpoint()
        if checkpoint is None:
            checkpoint = now or self.clock()
            self.logger.warning(
                "No farm checkpoint stored; starting from %s",
                format_rfc3339(checkpoint),
            )
            async with asyncio.timeout(self.config.store_timeout):
                await self.store.put_checkpoint(checkpoint)
        self.checkpoint = checkpoint
        return checkpoint

    def elapsed_cycles(self, now: datetime) -> int:
        if self.checkpoint is None:
            return 0
        seconds = (now - self.checkpoint).total_seconds()
        return max(math.floor(seconds / self.config.cycle_seconds), 0)

    def _absorb(self, events: Iterable[ActivityEvent]) -> None:
        for event in events:
            pending = self.active.get(event.user_id)
            if pending is None or event.at > pending:
                self.active[event.user_id] = event.at

    # ------------------------------------------------------------------
    async def tick(self, now: datetime | None = None) -> TickResult:
        """Run one farm tick and report what happened."""

        now = now or self.clock()
        self._absorb(self.feed.drain())
        result = await self._tick(now)
        self.last_result = result
        return result

    async def _tick(self, now: datetime) -> TickResult:
        if not self.active:
            return TickResult(checkpoint=self.checkpoint, reason=REASON_IDLE)

        if self.checkpoint is None:
            try:
                await self.load_checkpoint(now)
            except (TimeoutError, HacksteadError, OSError) as err:
                self._fail("checkpoint_read", "Couldn't read farm checkpoint: %s", err)
                return TickResult(reason=REASON_FETCH_FAILED)

        elapsed = self.elapsed_cycles(now)
        if elapsed == 0:
            return TickResult(checkpoint=self.checkpoint, reason=REASON_NOT_DUE)

        try:
            hacksteaders = await self._fetch_all()
        except (HacksteadError, OSError) as err:
            self._fail("fetch", "Couldn't read hacksteaders from the store: %s", err)
            return TickResult(elapsed=elapsed, checkpoint=self.checkpoint, reason=REASON_FETCH_FAILED)

        try:
            batch, notifications = self._advance(hacksteaders, elapsed)
        except ResolutionError as err:
            self.logger.error("Couldn't aggregate advancements, skipping tick: %s", err)
            self.last_error = str(err)
            return TickResult(elapsed=elapsed, checkpoint=self.checkpoint, reason=REASON_RESOLUTION_FAILED)

        assert self.checkpoint is not None
        checkpoint = self.checkpoint + self.cycle * elapsed
        try:
            async with asyncio.timeout(self.config.store_timeout):
                await self.store.put_entities(batch, checkpoint=checkpoint)
        except TimeoutError as err:
            self._fail("write", "Timed out writing %d documents: %s", len(batch), err)
            return TickResult(elapsed=elapsed, checkpoint=self.checkpoint, reason=REASON_WRITE_FAILED)
        except (HacksteadError, OSError) as err:
            self._fail("write", "Couldn't write %d documents: %s", len(batch), err)
            return TickResult(elapsed=elapsed, checkpoint=self.checkpoint, reason=REASON_WRITE_FAILED)

        self.checkpoint = checkpoint
        self.last_success_at = now
        self.last_error = None
        self._settle(hacksteaders, now)
        self.logger.info("Ran %d farming cycles for %d hacksteaders", elapsed, len(hacksteaders))

        await self._deliver(notifications)
        return TickResult(elapsed=elapsed, advanced=True, checkpoint=checkpoint, notifications=notifications)

    def _fail(self, code: str, message: str, *args: Any) -> None:
        self.last_error = message % args
        warn_once(self.logger, code, message, *args)

    # ------------------------------------------------------------------
    async def _fetch_all(self) -> list[Hacksteader]:
        sem = asyncio.Semaphore(self.config.fetch_concurrency)

        async def fetch(user_id: str) -> tuple[str, Hacksteader | None]:
            hs = await fetch_hacksteader(
                self.store,
                user_id,
                self.catalog,
                timeout=self.config.store_timeout,
                limiter=sem,
            )
            return user_id, hs

        results = await asyncio.gather(*(fetch(user_id) for user_id in list(self.active)))
        found: list[Hacksteader] = []
        for user_id, hs in results:
            if hs is None:
                self.logger.info("Dropping %s from the active set: no profile", user_id)
                self.active.pop(user_id, None)
                continue
            found.append(hs)
        return found

    def _advance(
        self,
        hacksteaders: list[Hacksteader],
        elapsed: int,
    ) -> tuple[list[dict[str, Any]], list[Notification]]:
        """Replay ``elapsed`` cycles in memory. Nothing here touches the store."""

        catalog = self.catalog
        checkpoint = format_rfc3339(self.checkpoint) if self.checkpoint else ""
        notifications: list[Notification] = []
        profiles: dict[str, Profile] = {hs.user_id: hs.profile for hs in hacksteaders}
        touched: dict[str, Tile] = {}
        rngs: dict[str, random.Random] = {}
        spawned: dict[str, int] = {}

        for hs in hacksteaders:
            pending = self.active.get(hs.user_id)
            if pending is not None:
                hs.profile.touch(pending)
            for _, tile in hs.planted():
                touched[tile.id] = tile
                rngs[tile.id] = random.Random(f"{checkpoint}|{tile.id}")

        for cycle in range(elapsed):
            for hs in hacksteaders:
                for plant, tile in list(hs.planted()):
                    profile = profiles.get(tile.steader)
                    if profile is None:
                        self.logger.warning(
                            "couldn't get tile[%s]'s steader[%s]'s profile", tile.id, tile.steader
                        )
                        continue

                    crossed = profile.increment_xp(catalog)
                    if crossed is not None:
                        notifications.append(
                            hackstead_notification(profile.id, crossed, profile.summary(catalog).to_dict())
                        )

                    crossed = plant.increment_xp(catalog)
                    summary = plant.summary(plant_extra_advancements(tile, hs, catalog), catalog)
                    if crossed is not None:
                        notifications.append(
                            plant_notification(
                                profile.id,
                                plant.archetype(catalog).name,
                                crossed,
                                summary.to_dict(),
                            )
                        )

                    def give(handle: ArchetypeHandle, *, tile_id: str = tile.id) -> None:
                        n = spawned.get(tile_id, 0)
                        spawned[tile_id] = n + 1
                        item_id = uuid.uuid5(_ITEM_NAMESPACE, f"{checkpoint}|{tile_id}|{n}")
                        profile.inventory.append(
                            Possession(id=str(item_id), archetype_handle=handle, steader=profile.id)
                        )

                    self._grow(tile, plant, summary, rngs[tile.id], give)

        batch: list[dict[str, Any]] = [hs.profile.to_dict(catalog) for hs in hacksteaders]
        batch.extend(tile.to_dict(catalog) for tile in touched.values())
        return batch, notifications

    def _grow(
        self,
        tile: Tile,
        plant: Plant,
        summary: PlantSummary,
        rng: random.Random,
        give: Callable[[ArchetypeHandle], None],
    ) -> None:
        """Advance the yield and craft timers of one plant by one cycle."""

        plant.until_yield -= summary.yield_speed_multiplier
        if plant.until_yield <= 0:
            for rate, handle in summary.yields:
                for _ in range(rate.gen_count(rng)):
                    give(handle)
            plant.until_yield = plant.archetype(self.catalog).base_yield_duration

        craft = plant.craft
        if craft is None:
            return
        craft.until_finish -= 1
        if craft.until_finish > 0:
            return
        plant.craft = None
        made = craft.recipe.makes.any(rng)
        if made is not None:
            give(made)
        if craft.recipe.destroys_plant:
            self.logger.debug("Craft on tile %s used up its plant", tile.id)
            tile.plant = None

    def _settle(self, hacksteaders: list[Hacksteader], now: datetime) -> None:
        """Clear written activity stamps and retire stale accounts."""

        window = timedelta(seconds=self.config.active_window_seconds)
        for hs in hacksteaders:
            if hs.user_id in self.active:
                self.active[hs.user_id] = None
            if now - hs.profile.last_active >= window:
                self.logger.debug("%s is no longer active", hs.user_id)
                self.active.pop(hs.user_id, None)

    async def _deliver(self, notifications: list[Notification]) -> int:
        if not notifications:
            return 0
        sem = asyncio.Semaphore(self.config.notify_concurrency)

        async def send(notification: Notification) -> bool:
            async with sem:
                try:
                    async with asyncio.timeout(self.config.notify_timeout):
                        await self.notifier.send(notification)
                except asyncio.CancelledError:
                    raise
                except Exception as err:  # delivery is best effort
                    self.logger.warning("Couldn't notify %s: %s", notification.account_id, err)
                    return False
            return True

        results = await asyncio.gather(*(send(n) for n in notifications))
        return sum(results)

    # ------------------------------------------------------------------
    def _delay_to_boundary(self) -> float:
        tick = self.config.tick_seconds
        return tick - (self.clock().timestamp() % tick)

    async def run_forever(self) -> None:
        self.feed.bind(asyncio.get_running_loop())
        if self.checkpoint is None:
            try:
                await self.load_checkpoint()
            except (TimeoutError, HacksteadError, OSError) as err:
                # the first tick with active accounts tries again
                self._fail("checkpoint_read", "Couldn't read farm checkpoint: %s", err)
        while True:
            await asyncio.sleep(self._delay_to_boundary())
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as err:  # pragma: no cover - logged, retried next boundary
                self.logger.exception("Unexpected farm tick error: %s", err)
                self.last_error = str(err)

    def status(self) -> dict[str, Any]:
        result = self.last_result
        return {
            "checkpoint": format_rfc3339(self.checkpoint) if self.checkpoint else None,
            "active_accounts": len(self.active),
            "last_success_at": format_rfc3339(self.last_success_at) if self.last_success_at else None,
            "last_error": self.last_error,
            "last_reason": result.reason if result else None,
            "last_elapsed": result.elapsed if result else 0,
        }

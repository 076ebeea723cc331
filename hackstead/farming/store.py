"""Document stores used by the farm loop.

Every entity is a JSON document addressed by :class:`EntityKey`. The farm loop
only needs point reads, one batched write per tick and a single checkpoint
timestamp, which :class:`FarmStore` describes. The batched write takes the
new checkpoint along with the documents so both land together or not at all.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager, nullcontext
from copy import deepcopy
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from ..catalog import Catalog
from ..const import Category
from ..exceptions import HacksteadError, StoreError
from ..possess import Hacksteader, Profile, Tile
from ..utils import format_rfc3339, parse_rfc3339

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "EntityKey",
    "FarmStore",
    "MemoryFarmStore",
    "SqliteFarmStore",
    "entity_key",
    "fetch_hacksteader",
]


@dataclass(frozen=True, slots=True)
class EntityKey:
    category: Category
    id: str

    @classmethod
    def profile(cls, user_id: str) -> EntityKey:
        return cls(Category.PROFILE, user_id)

    @classmethod
    def land(cls, tile_id: str) -> EntityKey:
        return cls(Category.LAND, tile_id)


def entity_key(document: Mapping[str, Any]) -> EntityKey:
    """Return the key a stored document lives under."""

    try:
        return EntityKey(Category(document["cat"]), str(document["id"]))
    except (KeyError, ValueError) as err:
        raise StoreError(f"document has no usable cat/id: {err}", reason="key") from err


@runtime_checkable
class FarmStore(Protocol):
    async def get_entity(self, key: EntityKey) -> dict[str, Any] | None:
        """Return the document under ``key`` or ``None`` when there is none."""
        ...

    async def put_entities(
        self,
        batch: Iterable[Mapping[str, Any]],
        *,
        checkpoint: datetime | None = None,
    ) -> None:
        """Write every document in ``batch`` and ``checkpoint`` atomically."""
        ...

    async def get_checkpoint(self) -> datetime | None:
        ...

    async def put_checkpoint(self, ts: datetime) -> None:
        ...


class MemoryFarmStore:
    """Dictionary backed store for tests and dry runs."""

    def __init__(
        self,
        documents: Iterable[Mapping[str, Any]] = (),
        *,
        checkpoint: datetime | None = None,
    ) -> None:
        self.documents: dict[EntityKey, dict[str, Any]] = {}
        for doc in documents:
            self.documents[entity_key(doc)] = deepcopy(dict(doc))
        self.checkpoint = checkpoint
        self.batches_written = 0

    async def get_entity(self, key: EntityKey) -> dict[str, Any] | None:
        doc = self.documents.get(key)
        return deepcopy(doc) if doc is not None else None

    async def put_entities(
        self,
        batch: Iterable[Mapping[str, Any]],
        *,
        checkpoint: datetime | None = None,
    ) -> None:
        staged = {entity_key(doc): deepcopy(dict(doc)) for doc in batch}
        self.documents.update(staged)
        if checkpoint is not None:
            self.checkpoint = checkpoint
        self.batches_written += 1

    async def get_checkpoint(self) -> datetime | None:
        return self.checkpoint

    async def put_checkpoint(self, ts: datetime) -> None:
        self.checkpoint = ts


class SqliteFarmStore:
    """SQLite document store.

    Blocking calls run in a worker thread through :func:`asyncio.to_thread`.
    Each :meth:`put_entities` call is one transaction.
    """

    CHECKPOINT_NAME = "farm"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._is_memory = str(path) == ":memory:"
        if not self._is_memory:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._shared_conn: sqlite3.Connection | None = None
        self._ensure_schema()

    # ------------------------------------------------------------------
    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._is_memory:
            if self._shared_conn is None:
                self._shared_conn = sqlite3.connect(":memory:", check_same_thread=False)
                self._shared_conn.row_factory = sqlite3.Row
            yield self._shared_conn
        else:
            conn = sqlite3.connect(self.path)
            conn.row_factory = sqlite3.Row
            try:
                yield conn
            finally:
                conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS entities (
                    cat TEXT NOT NULL,
                    id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (cat, id)
                );

                CREATE TABLE IF NOT EXISTS checkpoints (
                    name TEXT PRIMARY KEY,
                    ts TEXT NOT NULL
                );
                """
            )
            conn.commit()

    # ------------------------------------------------------------------
    def get_entity_sync(self, key: EntityKey) -> dict[str, Any] | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT payload FROM entities WHERE cat = ? AND id = ?",
                (key.category.value, key.id),
            ).fetchone()
        if not row:
            return None
        return json.loads(row["payload"])

    def put_entities_sync(
        self,
        batch: Iterable[Mapping[str, Any]],
        *,
        checkpoint: datetime | None = None,
    ) -> None:
        now = format_rfc3339(datetime.now(tz=UTC))
        rows = []
        for doc in batch:
            key = entity_key(doc)
            rows.append((key.category.value, key.id, json.dumps(doc, separators=(",", ":")), now))
        with self._connection() as conn:
            try:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO entities(cat, id, payload, updated_at)
                    VALUES(?, ?, ?, ?)
                    """,
                    rows,
                )
                if checkpoint is not None:
                    self._set_checkpoint(conn, checkpoint)
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

    def get_checkpoint_sync(self) -> datetime | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT ts FROM checkpoints WHERE name = ?",
                (self.CHECKPOINT_NAME,),
            ).fetchone()
        if not row:
            return None
        return parse_rfc3339(row["ts"])

    def put_checkpoint_sync(self, ts: datetime) -> None:
        with self._connection() as conn:
            self._set_checkpoint(conn, ts)
            conn.commit()

    def _set_checkpoint(self, conn: sqlite3.Connection, ts: datetime) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO checkpoints(name, ts) VALUES(?, ?)",
            (self.CHECKPOINT_NAME, format_rfc3339(ts)),
        )

    def count_entities(self, category: Category | None = None) -> int:
        with self._connection() as conn:
            if category is None:
                row = conn.execute("SELECT COUNT(*) AS total FROM entities").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS total FROM entities WHERE cat = ?",
                    (category.value,),
                ).fetchone()
        if not row:
            return 0
        total = row["total"]
        return int(total) if total is not None else 0

    # ------------------------------------------------------------------
    async def get_entity(self, key: EntityKey) -> dict[str, Any] | None:
        try:
            return await asyncio.to_thread(self.get_entity_sync, key)
        except (sqlite3.Error, ValueError) as err:
            raise StoreError(f"couldn't read {key.category}/{key.id}: {err}", reason="read") from err

    async def put_entities(
        self,
        batch: Iterable[Mapping[str, Any]],
        *,
        checkpoint: datetime | None = None,
    ) -> None:
        docs = list(batch)
        try:
            await asyncio.to_thread(self.put_entities_sync, docs, checkpoint=checkpoint)
        except sqlite3.Error as err:
            raise StoreError(f"couldn't write {len(docs)} documents: {err}", reason="write") from err

    async def get_checkpoint(self) -> datetime | None:
        try:
            return await asyncio.to_thread(self.get_checkpoint_sync)
        except (sqlite3.Error, ValueError) as err:
            raise StoreError(f"couldn't read checkpoint: {err}", reason="read") from err

    async def put_checkpoint(self, ts: datetime) -> None:
        try:
            await asyncio.to_thread(self.put_checkpoint_sync, ts)
        except sqlite3.Error as err:
            raise StoreError(f"couldn't write checkpoint: {err}", reason="write") from err


async def _get(
    store: FarmStore,
    key: EntityKey,
    timeout: float | None,
    limiter: asyncio.Semaphore | None,
) -> dict[str, Any] | None:
    try:
        async with limiter or nullcontext():
            async with asyncio.timeout(timeout):
                return await store.get_entity(key)
    except TimeoutError as err:
        raise StoreError(f"timed out reading {key.category}/{key.id}", reason="timeout") from err


async def fetch_hacksteader(
    store: FarmStore,
    user_id: str,
    catalog: Catalog,
    *,
    timeout: float | None = None,
    limiter: asyncio.Semaphore | None = None,
) -> Hacksteader | None:
    """Load a profile and every tile it owns.

    Returns ``None`` when the account has no profile document. Tiles listed on
    the profile but missing from the store are skipped. Every read holds
    ``limiter`` while it is in flight, so one semaphore shared across accounts
    caps the store reads of a whole tick.
    """

    profile_doc = await _get(store, EntityKey.profile(user_id), timeout, limiter)
    if profile_doc is None:
        return None
    try:
        profile = Profile.from_dict(profile_doc, catalog)
    except (HacksteadError, KeyError, TypeError, ValueError) as err:
        raise StoreError(f"malformed profile document for {user_id}: {err}", reason="decode") from err

    tile_docs = await asyncio.gather(
        *(_get(store, EntityKey.land(tile_id), timeout, limiter) for tile_id in profile.land)
    )
    land: list[Tile] = []
    for tile_id, doc in zip(profile.land, tile_docs):
        if doc is None:
            _LOGGER.debug("Profile %s lists tile %s which does not exist", user_id, tile_id)
            continue
        try:
            land.append(Tile.from_dict(doc, catalog))
        except (HacksteadError, KeyError, TypeError, ValueError) as err:
            raise StoreError(f"malformed tile document {tile_id}: {err}", reason="decode") from err
    return Hacksteader(user_id=user_id, profile=profile, land=land)

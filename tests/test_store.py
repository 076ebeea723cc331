from __future__ import annotations

import asyncio
import sqlite3
from datetime import timedelta
from pathlib import Path

import pytest

from conftest import T0
from hackstead.const import Category
from hackstead.exceptions import StoreError
from hackstead.farming.store import (
    EntityKey,
    FarmStore,
    MemoryFarmStore,
    SqliteFarmStore,
    entity_key,
    fetch_hacksteader,
)
from hackstead.possess import Plant, Profile, Tile


def _seed_docs(catalog) -> list[dict]:
    profile = Profile.new("U1", T0)
    profile.land = ["t1", "t2", "gone"]
    tiles = [
        Tile("t1", "U1", T0, Plant.new(0, catalog)),
        Tile("t2", "U1", T0),
    ]
    return [profile.to_dict(catalog), *(tile.to_dict(catalog) for tile in tiles)]


def test_entity_key_from_document() -> None:
    assert entity_key({"cat": "land", "id": "t1"}) == EntityKey.land("t1")
    assert entity_key({"cat": "profile", "id": 7}) == EntityKey(Category.PROFILE, "7")
    with pytest.raises(StoreError):
        entity_key({"cat": "barn", "id": "x"})
    with pytest.raises(StoreError):
        entity_key({"id": "x"})


def test_stores_satisfy_protocol(tmp_path: Path) -> None:
    assert isinstance(MemoryFarmStore(), FarmStore)
    assert isinstance(SqliteFarmStore(tmp_path / "farm.db"), FarmStore)


@pytest.mark.asyncio
async def test_memory_store_copies_documents() -> None:
    store = MemoryFarmStore([{"cat": "land", "id": "t1", "plant": None}])
    doc = await store.get_entity(EntityKey.land("t1"))
    doc["plant"] = "mutated"
    assert (await store.get_entity(EntityKey.land("t1")))["plant"] is None
    assert await store.get_entity(EntityKey.land("nope")) is None

    await store.put_entities([{"cat": "land", "id": "t2"}], checkpoint=T0)
    assert store.checkpoint == T0
    assert store.batches_written == 1
    assert await store.get_checkpoint() == T0


@pytest.mark.asyncio
async def test_sqlite_store_round_trip(tmp_path: Path) -> None:
    store = SqliteFarmStore(tmp_path / "nested" / "farm.db")
    assert await store.get_checkpoint() is None

    docs = [{"cat": "profile", "id": "U1", "xp": 3}, {"cat": "land", "id": "t1", "plant": None}]
    await store.put_entities(docs, checkpoint=T0 + timedelta(seconds=5))

    assert await store.get_entity(EntityKey.profile("U1")) == docs[0]
    assert await store.get_checkpoint() == T0 + timedelta(seconds=5)
    assert store.count_entities() == 2
    assert store.count_entities(Category.LAND) == 1

    await store.put_entities([{"cat": "profile", "id": "U1", "xp": 4}])
    assert (await store.get_entity(EntityKey.profile("U1")))["xp"] == 4
    assert store.count_entities() == 2
    assert await store.get_checkpoint() == T0 + timedelta(seconds=5)


def test_sqlite_checkpoint_is_rfc3339_text(tmp_path: Path) -> None:
    path = tmp_path / "farm.db"
    store = SqliteFarmStore(path)
    store.put_checkpoint_sync(T0)
    with sqlite3.connect(path) as conn:
        (raw,) = conn.execute("SELECT ts FROM checkpoints").fetchone()
    assert raw == "2024-05-01T12:00:00.000Z"
    assert store.get_checkpoint_sync() == T0


@pytest.mark.asyncio
async def test_sqlite_batch_and_checkpoint_roll_back_together(tmp_path: Path, monkeypatch) -> None:
    store = SqliteFarmStore(tmp_path / "farm.db")
    await store.put_entities([{"cat": "profile", "id": "U1", "xp": 1}], checkpoint=T0)

    def broken(conn, ts):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store, "_set_checkpoint", broken)
    with pytest.raises(StoreError) as err:
        await store.put_entities([{"cat": "profile", "id": "U1", "xp": 2}], checkpoint=T0 + timedelta(seconds=5))
    assert err.value.reason == "write"

    monkeypatch.undo()
    assert (await store.get_entity(EntityKey.profile("U1")))["xp"] == 1
    assert await store.get_checkpoint() == T0


@pytest.mark.asyncio
async def test_sqlite_memory_database_is_shared_across_threads() -> None:
    store = SqliteFarmStore(":memory:")
    await store.put_entities([{"cat": "land", "id": "t1"}], checkpoint=T0)
    assert await store.get_entity(EntityKey.land("t1")) == {"cat": "land", "id": "t1"}
    assert await store.get_checkpoint() == T0


@pytest.mark.asyncio
async def test_fetch_hacksteader_skips_missing_tiles(make_catalog) -> None:
    catalog = make_catalog()
    store = MemoryFarmStore(_seed_docs(catalog))

    hs = await fetch_hacksteader(store, "U1", catalog)
    assert hs.user_id == "U1"
    assert [tile.id for tile in hs.land] == ["t1", "t2"]
    assert hs.land[0].plant.archetype_handle == 0
    assert [tile.id for _, tile in hs.planted()] == ["t1"]


@pytest.mark.asyncio
async def test_fetch_hacksteader_without_profile(make_catalog) -> None:
    catalog = make_catalog()
    assert await fetch_hacksteader(MemoryFarmStore(), "U404", catalog) is None


@pytest.mark.asyncio
async def test_fetch_hacksteader_rejects_malformed_documents(make_catalog) -> None:
    catalog = make_catalog()
    docs = _seed_docs(catalog)
    docs[1]["plant"]["archetype"] = "Oak"
    with pytest.raises(StoreError) as err:
        await fetch_hacksteader(MemoryFarmStore(docs), "U1", catalog)
    assert err.value.reason == "decode"


class SlowStore(MemoryFarmStore):
    async def get_entity(self, key):
        await asyncio.sleep(1)
        return await super().get_entity(key)


@pytest.mark.asyncio
async def test_fetch_hacksteader_times_out(make_catalog) -> None:
    catalog = make_catalog()
    store = SlowStore(_seed_docs(catalog))
    with pytest.raises(StoreError) as err:
        await fetch_hacksteader(store, "U1", catalog, timeout=0.01)
    assert err.value.reason == "timeout"


class CountingStore(MemoryFarmStore):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.in_flight = 0
        self.peak = 0

    async def get_entity(self, key):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().get_entity(key)
        finally:
            self.in_flight -= 1


def _wide_farm(catalog, tiles: int = 8) -> list[dict]:
    profile = Profile.new("U1", T0)
    land = [Tile(f"t{i}", "U1", T0, Plant.new(0, catalog)) for i in range(tiles)]
    profile.land = [tile.id for tile in land]
    return [profile.to_dict(catalog), *(tile.to_dict(catalog) for tile in land)]


@pytest.mark.asyncio
async def test_fetch_hacksteader_limiter_caps_tile_reads(make_catalog) -> None:
    catalog = make_catalog()
    store = CountingStore(_wide_farm(catalog))

    hs = await fetch_hacksteader(store, "U1", catalog, limiter=asyncio.Semaphore(2))

    assert len(hs.land) == 8
    assert store.peak == 2


@pytest.mark.asyncio
async def test_fetch_hacksteader_reads_tiles_concurrently(make_catalog) -> None:
    catalog = make_catalog()
    store = CountingStore(_wide_farm(catalog))

    await fetch_hacksteader(store, "U1", catalog)

    assert store.peak == 8

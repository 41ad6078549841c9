from __future__ import annotations

import json
from pathlib import Path

import pytest

from salescache import CacheConfig, FileSyncStore, PersistEvent, PersistEventKind, SqliteRecordStore, StateCache


@pytest.fixture
def config(tmp_path: Path) -> CacheConfig:
    return CacheConfig(data_dir=tmp_path, save_delay=0.01)


@pytest.mark.asyncio
async def test_state_survives_restart_on_disk(config: CacheConfig) -> None:
    async with StateCache(config) as cache:
        assert isinstance(cache.sync_store, FileSyncStore)
        assert isinstance(cache.record_store, SqliteRecordStore)
        cache.save(cache.key("settings"), {"currency": "THB"})
        goals = await cache.collection("goals")
        goals.add_item({"id": "g1", "target": 5000})

    async with StateCache(config) as cache:
        assert cache.load("shopee_settings") == {"currency": "THB"}
        goals = await cache.collection("goals")
        assert goals.data == [{"id": "g1", "target": 5000}]

    mirror = json.loads((config.data_dir / "local_storage.json").read_text(encoding="utf-8"))
    assert json.loads(mirror["shopee_goals"]) == [{"id": "g1", "target": 5000}]


@pytest.mark.asyncio
async def test_bindings_are_shared_per_key() -> None:
    cache = StateCache.in_memory(CacheConfig(save_delay=0.01))

    assert cache.scalar("shopee_settings", {}) is cache.scalar("shopee_settings")
    assert await cache.collection("tasks") is await cache.collection("tasks")


@pytest.mark.asyncio
async def test_collection_uses_legacy_key_from_migration_table() -> None:
    events: list[PersistEvent] = []
    cache = StateCache.in_memory(CacheConfig(save_delay=0.01), on_event=events.append)
    cache.sync_store.set_item("shopee_hero_products", json.dumps([{"id": "p1"}, {"id": "p2"}]))

    products = await cache.collection("products")
    products.delete_item("p1")
    await cache.flush()

    assert products.data == [{"id": "p2"}]
    assert json.loads(cache.sync_store.get_item("shopee_hero_products") or "") == [{"id": "p2"}]
    assert await cache.record_store.get_all("products") == [{"id": "p2"}]
    assert events[-1].kind is PersistEventKind.WRITTEN


@pytest.mark.asyncio
async def test_snapshot_console_and_migrate() -> None:
    cache = StateCache.in_memory(CacheConfig(save_delay=0.01))
    cache.sync_store.set_item("shopee_video_logs", json.dumps([{"id": "v1"}]))

    report = await cache.migrate()
    snapshot = await cache.snapshot()

    assert report.migrated == {"videoLogs": 1}
    assert snapshot["videoLogs"] == [{"id": "v1"}]
    assert set(snapshot) == set(cache.record_store.store_names())
    assert (await cache.console().record_counts())["videoLogs"] == 1

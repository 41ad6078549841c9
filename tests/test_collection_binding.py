from __future__ import annotations

import json
import threading
from collections.abc import Sequence
from typing import Any

import pytest

from salescache.bindings import CollectionBinding
from salescache.exceptions import RecordStoreError
from salescache.models import Record, records_sanitizer
from salescache.state.events import PersistEvent, PersistEventKind
from salescache.storage.record_store import MemoryRecordStore
from salescache.storage.sync_store import MemorySyncStore


class Task(Record):
    title: str = ""
    done: bool = False


class BrokenRecordStore(MemoryRecordStore):
    """Record store whose backend is unavailable."""

    async def get_all(self, store: str) -> list[Any]:
        raise RecordStoreError("backend unavailable", store=store)

    async def count(self, store: str) -> int:
        raise RecordStoreError("backend unavailable", store=store)

    async def replace_all(self, store: str, records: Sequence[Any]) -> None:
        raise RecordStoreError("backend unavailable", store=store)


def _tasks(n: int) -> list[dict[str, Any]]:
    return [{"id": f"t{i}", "title": f"Task {i}"} for i in range(n)]


@pytest.mark.asyncio
async def test_legacy_collection_is_migrated_on_first_load() -> None:
    sync_store = MemorySyncStore()
    sync_store.set_item("shopee_tasks_def", json.dumps(_tasks(6)))
    record_store = MemoryRecordStore()
    binding = CollectionBinding("tasks", record_store, sync_store=sync_store, legacy_key="shopee_tasks_def")

    data = await binding.load()

    assert data == _tasks(6)
    assert await record_store.get_all("tasks") == _tasks(6)
    assert sync_store.get_item("shopee_tasks_def") == json.dumps(_tasks(6))
    assert binding.initialized
    assert binding.error is None


@pytest.mark.asyncio
async def test_fresh_install_add_item_reaches_store_and_mirror() -> None:
    sync_store = MemorySyncStore()
    record_store = MemoryRecordStore()
    binding = CollectionBinding(
        "goals",
        record_store,
        sync_store=sync_store,
        legacy_key="shopee_goals",
        save_delay=0.01,
    )
    await binding.load()
    assert binding.data == []

    binding.add_item({"id": "g1", "target": 1000})
    await binding.flush()

    assert await record_store.get_all("goals") == [{"id": "g1", "target": 1000}]
    assert json.loads(sync_store.get_item("shopee_goals") or "") == [{"id": "g1", "target": 1000}]
    assert sync_store.get_item("shopee_goals_backup") == sync_store.get_item("shopee_goals")


@pytest.mark.asyncio
async def test_empty_collection_does_not_overwrite_loaded_records() -> None:
    record_store = MemoryRecordStore()
    await record_store.replace_all("products", [{"id": "p1"}, {"id": "p2"}])
    events: list[PersistEvent] = []
    binding = CollectionBinding("products", record_store, save_delay=0.01, on_event=events.append)
    await binding.load()

    binding.set_data([])
    await binding.flush()

    assert await record_store.count("products") == 2
    assert events[-1].kind is PersistEventKind.BLOCKED_STATE_LOSS
    assert events[-1].previous_count == 2


@pytest.mark.asyncio
async def test_clear_empties_the_store_on_purpose() -> None:
    record_store = MemoryRecordStore()
    await record_store.replace_all("products", [{"id": "p1"}])
    binding = CollectionBinding("products", record_store, save_delay=0.01)
    await binding.load()

    binding.clear()
    await binding.flush()

    assert await record_store.count("products") == 0
    assert binding.data == []


@pytest.mark.asyncio
async def test_changes_before_first_load_are_not_persisted() -> None:
    record_store = MemoryRecordStore()
    await record_store.replace_all("competitors", [{"id": "c1"}])
    binding = CollectionBinding("competitors", record_store, save_delay=0.01)

    binding.set_data([{"id": "c2"}])
    await binding.flush()

    assert await record_store.get_all("competitors") == [{"id": "c1"}]
    assert await binding.load() == [{"id": "c1"}]


@pytest.mark.asyncio
async def test_item_helpers_on_model_records() -> None:
    record_store = MemoryRecordStore()
    await record_store.replace_all("tasks", [*_tasks(2), {"id": "t9", "done": "maybe"}])
    binding = CollectionBinding("tasks", record_store, sanitizer=records_sanitizer(Task), save_delay=0.01)
    await binding.load()
    assert [t.id for t in binding.data] == ["t0", "t1"]

    binding.update_item("t0", {"done": True})
    binding.update_item("missing", {"done": True})
    binding.delete_item("t1")
    binding.add_item(Task(id="t2", title="Restock"))
    await binding.flush()

    stored = await record_store.get_all("tasks")
    assert [(r["id"], r["done"]) for r in stored] == [("t0", True), ("t2", False)]


@pytest.mark.asyncio
async def test_add_item_requires_identity() -> None:
    binding = CollectionBinding("tasks", MemoryRecordStore())
    await binding.load()

    with pytest.raises(ValueError):
        binding.add_item({"title": "anonymous"})


@pytest.mark.asyncio
async def test_default_is_used_for_empty_store_but_not_persisted() -> None:
    record_store = MemoryRecordStore()
    binding = CollectionBinding("settings", record_store, default=[{"key": "currency", "value": "THB"}])

    assert await binding.load() == [{"key": "currency", "value": "THB"}]
    assert await record_store.count("settings") == 0


@pytest.mark.asyncio
async def test_refresh_picks_up_external_changes() -> None:
    record_store = MemoryRecordStore()
    binding = CollectionBinding("videoLogs", record_store)
    await binding.load()

    await record_store.replace_all("videoLogs", [{"id": "v1"}])

    assert await binding.refresh() == [{"id": "v1"}]


@pytest.mark.asyncio
async def test_empty_record_store_heals_from_legacy_mirror() -> None:
    sync_store = MemorySyncStore()
    sync_store.set_item("shopee_goals_backup", json.dumps([{"id": "g1"}]))
    record_store = MemoryRecordStore()
    events: list[PersistEvent] = []
    binding = CollectionBinding(
        "goals",
        record_store,
        sync_store=sync_store,
        legacy_key="shopee_goals",
        migrations=(),
        on_event=events.append,
    )

    assert await binding.load() == [{"id": "g1"}]
    assert await record_store.get_all("goals") == [{"id": "g1"}]
    assert [e.kind for e in events] == [PersistEventKind.RECOVERED_FROM_LEGACY]


@pytest.mark.asyncio
async def test_unavailable_record_store_falls_back_to_mirror() -> None:
    sync_store = MemorySyncStore()
    sync_store.set_item("shopee_goals", json.dumps([{"id": "g1"}]))
    events: list[PersistEvent] = []
    binding = CollectionBinding(
        "goals",
        BrokenRecordStore(),
        sync_store=sync_store,
        legacy_key="shopee_goals",
        save_delay=0.01,
        on_event=events.append,
    )

    assert await binding.load() == [{"id": "g1"}]
    assert isinstance(binding.error, RecordStoreError)
    assert events[0].kind is PersistEventKind.LOAD_ERROR

    binding.add_item({"id": "g2"})
    await binding.flush()

    # The mirror still receives the write even though the record store failed.
    assert json.loads(sync_store.get_item("shopee_goals") or "") == [{"id": "g1"}, {"id": "g2"}]
    assert events[-1].kind is PersistEventKind.WRITE_ERROR
    assert isinstance(binding.error, RecordStoreError)


@pytest.mark.asyncio
async def test_unavailable_record_store_without_mirror_uses_default() -> None:
    binding = CollectionBinding("goals", BrokenRecordStore(), default=[{"id": "seed"}])

    assert await binding.load() == [{"id": "seed"}]
    assert binding.error is not None
    assert not binding.is_loading


def _active_only(raw: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [task for task in raw if task["active"]]


@pytest.mark.asyncio
async def test_failing_sanitizer_is_recorded_and_falls_back_to_default() -> None:
    record_store = MemoryRecordStore()
    await record_store.replace_all("tasks", [{"id": "t1"}])
    events: list[PersistEvent] = []
    binding = CollectionBinding(
        "tasks",
        record_store,
        default=[{"id": "seed", "active": True}],
        sanitizer=_active_only,
        on_event=events.append,
    )

    assert await binding.load() == [{"id": "seed", "active": True}]
    assert isinstance(binding.error, KeyError)
    assert events[0].kind is PersistEventKind.LOAD_ERROR
    assert binding.initialized and not binding.is_loading

    assert await binding.refresh() == [{"id": "seed", "active": True}]
    # Nothing was written back over the stored records.
    assert await record_store.get_all("tasks") == [{"id": "t1"}]


@pytest.mark.asyncio
async def test_uncopyable_item_is_reported_not_raised() -> None:
    record_store = MemoryRecordStore()
    events: list[PersistEvent] = []
    binding = CollectionBinding("tasks", record_store, save_delay=0.01, on_event=events.append)
    await binding.load()

    binding.add_item({"id": "t1", "lock": threading.Lock()})
    await binding.flush()

    assert binding.error is not None
    assert events[-1].kind is PersistEventKind.SERIALIZATION_ERROR
    assert await record_store.count("tasks") == 0


@pytest.mark.asyncio
async def test_heal_from_mirror_stores_sanitized_records() -> None:
    sync_store = MemorySyncStore()
    legacy = [{"id": "t1", "title": "Restock"}, {"id": "t2", "done": "maybe"}]
    sync_store.set_item("shopee_tasks_def", json.dumps(legacy))
    record_store = MemoryRecordStore()
    binding = CollectionBinding(
        "tasks",
        record_store,
        sync_store=sync_store,
        legacy_key="shopee_tasks_def",
        sanitizer=records_sanitizer(Task),
        migrations=(),
    )

    data = await binding.load()

    assert [t.id for t in data] == ["t1"]
    assert await record_store.get_all("tasks") == [{"id": "t1", "title": "Restock", "done": False}]

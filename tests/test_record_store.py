from __future__ import annotations

from pathlib import Path

import pytest

from salescache.exceptions import RecordStoreError
from salescache.storage.record_store import MemoryRecordStore, RecordStore, SqliteRecordStore


@pytest.fixture(params=["memory", "sqlite"])
def record_store(request: pytest.FixtureRequest, tmp_path: Path) -> RecordStore:
    if request.param == "memory":
        return MemoryRecordStore()
    return SqliteRecordStore(tmp_path / "records.sqlite3")


@pytest.mark.asyncio
async def test_insertion_order_and_upsert_in_place(record_store: RecordStore) -> None:
    await record_store.put("tasks", {"id": "b", "title": "second"})
    await record_store.put("tasks", {"id": "a", "title": "first"})
    await record_store.put("tasks", {"id": "b", "title": "renamed"})

    records = await record_store.get_all("tasks")

    assert [r["id"] for r in records] == ["b", "a"]
    assert records[0]["title"] == "renamed"
    assert await record_store.count("tasks") == 2
    assert await record_store.get("tasks", "a") == {"id": "a", "title": "first"}
    assert await record_store.get("tasks", "zzz") is None


@pytest.mark.asyncio
async def test_replace_all_and_delete(record_store: RecordStore) -> None:
    await record_store.put_all("salesData", [{"id": 1, "revenue": 10}, {"id": 2, "revenue": 20}])
    await record_store.replace_all("salesData", [{"id": 3, "revenue": 30}])

    assert await record_store.get_all("salesData") == [{"id": 3, "revenue": 30}]

    await record_store.delete("salesData", 3)
    assert await record_store.count("salesData") == 0


@pytest.mark.asyncio
async def test_positional_store_addresses_records_by_sequence(record_store: RecordStore) -> None:
    await record_store.replace_all("workLogs", [{"date": "2024-01-01"}, {"date": "2024-01-02"}])
    key = await record_store.put("workLogs", {"date": "2024-01-03"})

    assert key == 3
    assert await record_store.get("workLogs", 2) == {"date": "2024-01-02"}
    await record_store.delete("workLogs", 1)
    assert [r["date"] for r in await record_store.get_all("workLogs")] == ["2024-01-02", "2024-01-03"]


@pytest.mark.asyncio
async def test_missing_identity_rejects_the_whole_batch(record_store: RecordStore) -> None:
    await record_store.replace_all("products", [{"id": "p1"}])

    with pytest.raises(RecordStoreError):
        await record_store.replace_all("products", [{"id": "p2"}, {"name": "no id"}])

    assert await record_store.get_all("products") == [{"id": "p1"}]


@pytest.mark.asyncio
async def test_unknown_store_raises(record_store: RecordStore) -> None:
    with pytest.raises(RecordStoreError):
        await record_store.get_all("nope")


@pytest.mark.asyncio
async def test_sqlite_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "db" / "records.sqlite3"
    await SqliteRecordStore(path).replace_all("competitors", [{"id": "c1", "name": "Shop"}])

    assert await SqliteRecordStore(path).get_all("competitors") == [{"id": "c1", "name": "Shop"}]


@pytest.mark.asyncio
async def test_sqlite_store_unavailable_raises_record_store_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", encoding="utf-8")
    store = SqliteRecordStore(blocker / "records.sqlite3")

    with pytest.raises(RecordStoreError):
        await store.get_all("tasks")

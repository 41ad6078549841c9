from __future__ import annotations

import json
from pathlib import Path

import pytest

from salescache.exceptions import StorageQuotaError
from salescache.storage.sync_store import FileSyncStore, MemorySyncStore, read_legacy_list, read_slot


def test_quota_counts_keys_and_values_and_keeps_old_value() -> None:
    store = MemorySyncStore(quota_bytes=20)
    store.set_item("k", "x" * 10)
    assert store.used_bytes() == 11

    with pytest.raises(StorageQuotaError):
        store.set_item("k", "y" * 25)

    assert store.get_item("k") == "x" * 10
    # Overwriting counts only the size difference.
    store.set_item("k", "z" * 19)
    assert store.used_bytes() == 20


def test_file_store_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "local_storage.json"
    store = FileSyncStore(path)
    store.set_item("shopee_goals", '[{"id":"g1"}]')
    store.remove_item("missing")

    reopened = FileSyncStore(path)

    assert reopened.get_item("shopee_goals") == '[{"id":"g1"}]'
    assert not (tmp_path / "local_storage.json.tmp").exists()


def test_file_store_moves_corrupt_file_aside(tmp_path: Path) -> None:
    path = tmp_path / "local_storage.json"
    path.write_text("{truncated", encoding="utf-8")

    store = FileSyncStore(path)

    assert store.keys() == []
    assert (tmp_path / "local_storage.json.corrupt").read_text(encoding="utf-8") == "{truncated"
    store.set_item("a", "1")
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}


def test_read_slot_falls_back_to_backup_and_heals_primary() -> None:
    store = MemorySyncStore()
    store.set_item("shopee_goals", "{corrupt")
    store.set_item("shopee_goals_backup", '[{"id":"g1"}]')

    result = read_slot(store, "shopee_goals")

    assert result is not None
    assert result.from_backup
    assert result.value == [{"id": "g1"}]
    assert store.get_item("shopee_goals") == '[{"id":"g1"}]'


def test_read_slot_returns_none_without_any_slot() -> None:
    assert read_slot(MemorySyncStore(), "shopee_goals") is None


def test_read_legacy_list_prefers_readable_primary_even_when_empty() -> None:
    store = MemorySyncStore()
    store.set_item("shopee_tasks_def", "[]")
    store.set_item("shopee_tasks_def_backup", '[{"id":"t1"}]')
    assert read_legacy_list(store, "shopee_tasks_def") == []

    store.set_item("shopee_tasks_def", "not json")
    assert read_legacy_list(store, "shopee_tasks_def") == [{"id": "t1"}]

    store.set_item("shopee_tasks_def", '{"id":"t1"}')
    assert read_legacy_list(store, "shopee_tasks_def") is None


def test_read_slot_applies_transform_and_skips_slots_it_rejects() -> None:
    store = MemorySyncStore()
    store.set_item("shopee_goals", '[{"id":"g1"}]')
    store.set_item("shopee_goals_backup", '[{"id":"g0","active":true}]')

    def active_only(raw: list[dict[str, object]]) -> list[dict[str, object]]:
        return [goal for goal in raw if goal["active"]]

    result = read_slot(store, "shopee_goals", transform=active_only, heal=False)

    assert result is not None
    assert result.from_backup
    assert result.value == [{"id": "g0", "active": True}]
    assert store.get_item("shopee_goals") == '[{"id":"g1"}]'

    store.remove_item("shopee_goals_backup")
    assert read_slot(store, "shopee_goals", transform=active_only) is None

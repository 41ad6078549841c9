"""Recovery console: operator diagnostics and manual repair.

The console keeps no state of its own.  Every report is recomputed from the
stores when asked for, and a restore does not touch live bindings; callers
reload application state afterwards.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from salescache._codec import DEFAULT_CODEC, Codec
from salescache._constants import EXPORT_FILENAME_PREFIX, STORAGE_KEYS, backup_key
from salescache.exceptions import (
    CacheError,
    ConfirmationRequiredError,
    NoBackupError,
    SerializationError,
)
from salescache.models.console import ExportDocument, ImportResult, SlotStats, StorageUsage
from salescache.state.policy import item_count
from salescache.storage.record_store import RecordStore
from salescache.storage.sync_store import SyncStore

_logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool] | bool


def _confirmed(confirm: Confirm, prompt: str) -> bool:
    return confirm(prompt) if callable(confirm) else bool(confirm)


class RecoveryConsole:
    """Inspect, restore, export and purge the known keys of a sync store."""

    def __init__(
        self,
        sync_store: SyncStore,
        *,
        record_store: RecordStore | None = None,
        keys: Sequence[str] = STORAGE_KEYS,
        export_dir: Path | None = None,
        codec: Codec = DEFAULT_CODEC,
    ) -> None:
        self._sync_store = sync_store
        self._record_store = record_store
        self._keys = tuple(keys)
        self._export_dir = export_dir
        self._codec = codec

    @property
    def keys(self) -> tuple[str, ...]:
        return self._keys

    def _count(self, raw: str | None) -> int:
        if raw is None:
            return 0
        try:
            return item_count(self._codec.decode(raw))
        except SerializationError:
            return 0

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def inspect(self) -> list[SlotStats]:
        """Byte size and item count of each known key's primary and backup slots."""
        stats: list[SlotStats] = []
        for key in self._keys:
            main = self._sync_store.get_item(key)
            backup = self._sync_store.get_item(backup_key(key))
            stats.append(
                SlotStats(
                    key=key,
                    main_size=len(main) if main is not None else 0,
                    backup_size=len(backup) if backup is not None else 0,
                    main_count=self._count(main),
                    backup_count=self._count(backup),
                )
            )
        return stats

    def restore_from_backup(self, key: str) -> int:
        """Copy the backup slot of *key* verbatim into its primary slot.

        Returns the number of items restored.  Raises :class:`NoBackupError`
        when there is no backup slot.
        """
        backup = self._sync_store.get_item(backup_key(key))
        if backup is None:
            raise NoBackupError(key)
        self._sync_store.set_item(key, backup)
        restored = self._count(backup)
        _logger.info("Restored %s from backup (%d items); reload application state", key, restored)
        return restored

    def build_export(self) -> ExportDocument:
        """Snapshot every known key's primary slot.

        Parseable payloads are embedded as data; anything else is kept as the
        raw string.  Missing keys are omitted.
        """
        data: dict[str, Any] = {}
        for key in self._keys:
            raw = self._sync_store.get_item(key)
            if raw is None:
                continue
            try:
                data[key] = self._codec.decode(raw, key=key)
            except SerializationError:
                data[key] = raw
        return ExportDocument(data=data)

    def export_all(self, directory: Path | None = None) -> Path:
        """Write :meth:`build_export` to ``sales_tracker_backup_<date>.json``."""
        document = self.build_export()
        target_dir = Path(directory or self._export_dir or Path.cwd())
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{EXPORT_FILENAME_PREFIX}{document.export_date.date().isoformat()}.json"
        path.write_text(json.dumps(document.to_document(), indent=2, ensure_ascii=False), encoding="utf-8")
        _logger.info("Backup exported to %s (%d keys)", path, len(document.data))
        return path

    def clear_all_backups(self, *, confirm: Confirm) -> int:
        """Remove every backup slot (never a primary slot).

        *confirm* is either a bool or a callable receiving the prompt.
        Raises :class:`ConfirmationRequiredError` when not confirmed.
        """
        if not _confirmed(confirm, "Are you sure you want to clear all backups? This cannot be undone."):
            raise ConfirmationRequiredError("Clearing backups was not confirmed")
        removed = 0
        for key in self._keys:
            shadow = backup_key(key)
            if self._sync_store.get_item(shadow) is not None:
                self._sync_store.remove_item(shadow)
                removed += 1
        _logger.warning("Cleared %d backup slots", removed)
        return removed

    # ------------------------------------------------------------------
    # Storage-wide helpers
    # ------------------------------------------------------------------

    def storage_usage(self) -> StorageUsage:
        return StorageUsage(used=self._sync_store.used_bytes(), total=self._sync_store.quota_bytes)

    def clear_all(self, prefix: str, *, confirm: Confirm) -> int:
        """Remove every slot whose key starts with *prefix*, backups included."""
        if not prefix:
            raise ValueError("prefix must be non-empty")
        if not _confirmed(confirm, f"Delete all stored data starting with {prefix!r}?"):
            raise ConfirmationRequiredError("Clearing storage was not confirmed")
        doomed = [key for key in self._sync_store.keys() if key.startswith(prefix)]
        for key in doomed:
            self._sync_store.remove_item(key)
        _logger.warning("Cleared %d slots with prefix %s", len(doomed), prefix)
        return len(doomed)

    # ------------------------------------------------------------------
    # Record store
    # ------------------------------------------------------------------

    def _require_record_store(self) -> RecordStore:
        if self._record_store is None:
            raise CacheError("No record store attached to the recovery console")
        return self._record_store

    async def record_counts(self) -> dict[str, int]:
        """Item count of every record store; unreadable stores count 0."""
        record_store = self._require_record_store()
        counts: dict[str, int] = {}
        for store in record_store.store_names():
            try:
                counts[store] = await record_store.count(store)
            except CacheError as exc:
                _logger.warning("Cannot count %s: %s", store, exc)
                counts[store] = 0
        return counts

    async def export_full_backup(self) -> ExportDocument:
        """Snapshot every record store; unreadable stores export as empty."""
        record_store = self._require_record_store()
        data: dict[str, Any] = {}
        for store in record_store.store_names():
            try:
                data[store] = await record_store.get_all(store)
            except CacheError as exc:
                _logger.error("Error exporting %s: %s", store, exc)
                data[store] = []
        return ExportDocument(export_date=datetime.now(UTC), data=data)

    async def import_full_backup(self, backup: ExportDocument | dict[str, Any]) -> ImportResult:
        """Replace each non-empty record store from *backup*.

        Bound collections must be refreshed afterwards.
        """
        record_store = self._require_record_store()
        if isinstance(backup, dict):
            if not isinstance(backup.get("data"), dict):
                raise SerializationError("Invalid backup format")
            backup = ExportDocument.model_validate(backup)

        counts: dict[str, int] = {}
        for store, items in backup.data.items():
            if not isinstance(items, list) or not items:
                continue
            try:
                await record_store.replace_all(store, items)
                counts[store] = len(items)
            except CacheError as exc:
                _logger.error("Error importing %s: %s", store, exc)
                counts[store] = 0
        return ImportResult(success=True, counts=counts)

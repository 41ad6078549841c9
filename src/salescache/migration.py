"""One-shot copy of legacy synchronous collections into the record store.

There is no persisted "migrated" flag.  A collection is migrated when its
record store is empty and its legacy slot holds a non-empty array, so running
the routine again after a successful copy does nothing.  Legacy slots are
left in place; they keep serving as a mirror.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from salescache._codec import DEFAULT_CODEC, Codec
from salescache._constants import LEGACY_MIGRATIONS
from salescache.exceptions import CacheError
from salescache.storage.record_store import RecordStore
from salescache.storage.sync_store import SyncStore, read_legacy_list

_logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """What one run of :func:`migrate_legacy_collections` did."""

    migrated: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def migrated_count(self) -> int:
        return len(self.migrated)


async def migrate_legacy_collections(
    sync_store: SyncStore,
    record_store: RecordStore,
    migrations: Sequence[tuple[str, str]] = LEGACY_MIGRATIONS,
    *,
    codec: Codec = DEFAULT_CODEC,
) -> MigrationReport:
    """Copy legacy arrays into empty record stores (replace, not merge)."""
    report = MigrationReport()

    for legacy_key, store in migrations:
        try:
            if await record_store.count(store) > 0:
                continue
            records = read_legacy_list(sync_store, legacy_key, codec=codec)
            if not records:
                continue
            await record_store.replace_all(store, records)
        except CacheError as exc:
            _logger.error("Failed to migrate %s to %s: %s", legacy_key, store, exc)
            report.failed[legacy_key] = str(exc)
            continue
        report.migrated[store] = len(records)
        _logger.info("Migrated %d items from %s to %s", len(records), legacy_key, store)

    if report.migrated:
        _logger.info("Migration complete: %d stores migrated", report.migrated_count)
    return report

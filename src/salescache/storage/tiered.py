"""Tiered storage policy for record collections.

A collection is persisted to an ordered list of tiers.  The first tier is
authoritative; the rest are safety mirrors.

* Read: the first tier that yields records wins.  Records recovered from a
  lower tier are written back to the first tier (self-heal).
* Write: fan out to every tier.  Mirror failures are logged and tolerated;
  a failure of the first tier is raised after the mirrors were attempted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from salescache._codec import DEFAULT_CODEC, Codec
from salescache._constants import backup_key
from salescache.exceptions import CacheError, StorageWriteError
from salescache.storage.record_store import RecordStore
from salescache.storage.sync_store import SyncStore, read_legacy_list

_logger = logging.getLogger(__name__)

RecordTransform = Callable[[list[Any]], list[Any]]


def _apply(transform: RecordTransform | None, records: list[Any]) -> list[Any]:
    return list(transform(records)) if transform else records


class StorageTier(Protocol):
    name: str

    async def read(self) -> list[Any]:
        ...

    async def write(self, records: Sequence[Any]) -> None:
        ...


class RecordStoreTier:
    """One named store of the asynchronous record store."""

    def __init__(self, record_store: RecordStore, store: str) -> None:
        self.name = store
        self._record_store = record_store
        self._store = store

    async def read(self) -> list[Any]:
        return await self._record_store.get_all(self._store)

    async def write(self, records: Sequence[Any]) -> None:
        await self._record_store.replace_all(self._store, records)


class LegacySlotTier:
    """A legacy primary/backup slot pair in the synchronous store."""

    def __init__(self, sync_store: SyncStore, key: str, *, codec: Codec = DEFAULT_CODEC) -> None:
        self.name = key
        self._sync_store = sync_store
        self._key = key
        self._codec = codec

    async def read(self) -> list[Any]:
        return read_legacy_list(self._sync_store, self._key, codec=self._codec) or []

    async def write(self, records: Sequence[Any]) -> None:
        text = self._codec.encode(list(records), key=self._key)
        self._sync_store.set_item(self._key, text)
        if records:
            try:
                self._sync_store.set_item(backup_key(self._key), text)
            except StorageWriteError as exc:
                # Storage full is fine here; the record store holds the data.
                _logger.debug("Backup mirror for %s skipped: %s", self._key, exc)


@dataclass(frozen=True)
class TieredRead:
    records: list[Any] = field(default_factory=list)
    source: str = ""
    healed: bool = False


class TieredCollectionStorage:
    """Ordered tiers with fallback-on-read and best-effort fan-out-on-write."""

    def __init__(self, tiers: Sequence[StorageTier]) -> None:
        if not tiers:
            raise ValueError("at least one storage tier is required")
        self._tiers = list(tiers)

    @classmethod
    def for_collection(
        cls,
        store: str,
        record_store: RecordStore,
        *,
        sync_store: SyncStore | None = None,
        legacy_key: str | None = None,
        codec: Codec = DEFAULT_CODEC,
    ) -> TieredCollectionStorage:
        tiers: list[StorageTier] = [RecordStoreTier(record_store, store)]
        if sync_store is not None and legacy_key:
            tiers.append(LegacySlotTier(sync_store, legacy_key, codec=codec))
        return cls(tiers)

    @property
    def primary(self) -> StorageTier:
        return self._tiers[0]

    @property
    def tiers(self) -> list[StorageTier]:
        return list(self._tiers)

    async def read(self, *, transform: RecordTransform | None = None) -> TieredRead:
        """Read from the first tier, falling back to (and healing from) mirrors.

        Failures of the first tier propagate; mirror read failures are logged.
        """
        records = await self.primary.read()
        if records:
            return TieredRead(_apply(transform, records), source=self.primary.name)

        recovered = await self.read_mirrors(transform=transform)
        if not recovered.records:
            return TieredRead([], source=self.primary.name)

        _logger.info("Recovered %d items from %s for %s", len(recovered.records), recovered.source, self.primary.name)
        try:
            await self.primary.write(recovered.records)
        except CacheError as exc:
            _logger.warning("Could not heal %s from %s: %s", self.primary.name, recovered.source, exc)
            return recovered
        return TieredRead(recovered.records, source=recovered.source, healed=True)

    async def read_mirrors(self, *, transform: RecordTransform | None = None) -> TieredRead:
        """Read the first non-empty mirror without touching the first tier.

        *transform* runs on the mirror records before they are returned, so
        a heal writes the transformed list.
        """
        for tier in self._tiers[1:]:
            try:
                records = await tier.read()
            except CacheError as exc:
                _logger.warning("Mirror %s unreadable: %s", tier.name, exc)
                continue
            if records:
                return TieredRead(_apply(transform, list(records)), source=tier.name)
        return TieredRead([], source="")

    async def write(self, records: Sequence[Any]) -> None:
        primary_error: CacheError | None = None
        try:
            await self.primary.write(records)
        except CacheError as exc:
            primary_error = exc

        for tier in self._tiers[1:]:
            try:
                await tier.write(records)
            except CacheError as exc:
                _logger.warning("Mirror write to %s failed: %s", tier.name, exc)

        if primary_error is not None:
            raise primary_error

"""Collection binding: an identity-keyed record list in the record store.

Load sequence (:meth:`CollectionBinding.load`, re-run by :meth:`refresh`):

1. migrate legacy synchronous collections into empty record stores;
2. read the record store, falling back to the legacy slot mirror and
   writing recovered records back (see :mod:`salescache.storage.tiered`);
3. apply the sanitizer;
4. adopt the result, or the default collection when it is empty.

A failed load records ``error`` and falls back to the legacy mirror or the
default so consumers always see a usable list.  After the first load every
change is persisted through the debounced writer and fanned out to the record
store and the legacy mirror.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from salescache._codec import DEFAULT_CODEC, Codec, to_jsonable
from salescache._constants import DEFAULT_SAVE_DELAY, LEGACY_MIGRATIONS
from salescache._debounce import DebouncedWriter
from salescache.bindings._base import BindingBase, EventCallback, PendingWrite
from salescache.exceptions import CacheError, SerializationError
from salescache.migration import migrate_legacy_collections
from salescache.state.events import PersistEventKind
from salescache.state.policy import should_persist
from salescache.storage.record_store import RecordStore
from salescache.storage.sync_store import SyncStore
from salescache.storage.tiered import TieredCollectionStorage

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def _merge(item: Any, patch: Mapping[str, Any]) -> Any:
    if isinstance(item, BaseModel):
        return item.model_copy(update=dict(patch))
    if isinstance(item, Mapping):
        return {**item, **patch}
    if dataclasses.is_dataclass(item) and not isinstance(item, type):
        return dataclasses.replace(item, **patch)
    raise TypeError(f"Cannot apply a partial update to {type(item).__name__}")


class CollectionBinding(BindingBase, Generic[T]):
    """In-memory record list mirrored to the record store.

    Records may be dicts, pydantic models or dataclasses; each must carry
    the identity field (``id`` by default) before it is added.
    """

    def __init__(
        self,
        store_name: str,
        record_store: RecordStore,
        *,
        default: Iterable[T] = (),
        sync_store: SyncStore | None = None,
        legacy_key: str | None = None,
        save_delay: float = DEFAULT_SAVE_DELAY,
        sanitizer: Callable[[list[Any]], list[T]] | None = None,
        id_field: str = "id",
        codec: Codec = DEFAULT_CODEC,
        migrations: Sequence[tuple[str, str]] = LEGACY_MIGRATIONS,
        on_event: EventCallback | None = None,
    ) -> None:
        super().__init__(store_name, on_event)
        self._record_store = record_store
        self._sync_store = sync_store
        self._default = list(default)
        self._sanitizer = sanitizer
        self._id_field = id_field
        self._codec = codec
        self._migrations = migrations
        self._storage = TieredCollectionStorage.for_collection(
            store_name,
            record_store,
            sync_store=sync_store,
            legacy_key=legacy_key,
            codec=codec,
        )
        self._data: list[T] = copy.deepcopy(self._default)
        self._initialized = False
        # Last collection known to be persisted with items in it.
        self._reference: list[T] = []
        self._writer: DebouncedWriter[PendingWrite[list[T]]] = DebouncedWriter(self._write, delay=save_delay)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def store_name(self) -> str:
        return self._key

    @property
    def data(self) -> list[T]:
        """A shallow copy of the current collection."""
        return list(self._data)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def __len__(self) -> int:
        return len(self._data)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _sanitize(self, records: list[Any]) -> list[T]:
        return list(self._sanitizer(records)) if self._sanitizer else records

    async def load(self) -> list[T]:
        """Run the full load sequence; never raises, failures land in :attr:`error`."""
        self._is_loading = True
        self._writer.cancel(self._key)
        loaded: list[T] = []
        try:
            if self._sync_store is not None and self._migrations:
                await migrate_legacy_collections(
                    self._sync_store,
                    self._record_store,
                    self._migrations,
                    codec=self._codec,
                )
            result = await self._storage.read(transform=self._sanitize)
            loaded = result.records
            if result.healed:
                self._emit(PersistEventKind.RECOVERED_FROM_LEGACY, item_count=len(loaded))
            self._error = None
        except Exception as exc:
            _logger.exception("Error loading %s", self._key)
            self._error = exc
            self._emit(PersistEventKind.LOAD_ERROR, error=str(exc))
            loaded = await self._degraded_load()
        finally:
            self._data = loaded if loaded else copy.deepcopy(self._default)
            self._reference = list(loaded)
            self._initialized = True
            self._is_loading = False
        return self.data

    async def _degraded_load(self) -> list[T]:
        try:
            fallback = await self._storage.read_mirrors(transform=self._sanitize)
            return fallback.records
        except Exception as exc:
            _logger.warning("No usable mirror for %s: %s", self._key, exc)
            return []

    async def refresh(self) -> list[T]:
        """Re-run the load sequence, e.g. after an external import."""
        return await self.load()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_data(self, value: Sequence[T] | Callable[[list[T]], Sequence[T]]) -> None:
        """Replace the collection (or derive it from the previous one)."""
        next_data = list(value(list(self._data)) if callable(value) else value)
        self._data = next_data
        if not self._initialized:
            # Persisting before the first load finishes would overwrite real data.
            return
        self._schedule(self._writer, PendingWrite(next_data))

    def _identity(self, item: Any) -> Any:
        if isinstance(item, Mapping):
            return item.get(self._id_field)
        return getattr(item, self._id_field, None)

    def add_item(self, item: T) -> None:
        if self._identity(item) is None:
            raise ValueError(f"Record for {self._key} has no {self._id_field!r}")
        self.set_data(lambda prev: [*prev, item])

    def update_item(self, identity: Any, updates: Mapping[str, Any]) -> None:
        """Merge *updates* into the record with *identity*; no-op when absent."""
        if not any(self._identity(item) == identity for item in self._data):
            return
        self.set_data(
            lambda prev: [_merge(item, updates) if self._identity(item) == identity else item for item in prev]
        )

    def delete_item(self, identity: Any) -> None:
        """Remove the first record with *identity*; no-op when absent."""
        for index, item in enumerate(self._data):
            if self._identity(item) == identity:
                self.set_data(lambda prev, index=index: [*prev[:index], *prev[index + 1 :]])
                return

    def clear(self) -> None:
        """Intentionally empty the collection; bypasses the state-loss guard."""
        self._data = []
        if self._initialized:
            self._schedule(self._writer, PendingWrite([], force=True))

    async def flush(self) -> None:
        await self._writer.flush(self._key)

    async def close(self) -> None:
        await self._writer.close()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _write(self, key: str, pending: PendingWrite[list[T]]) -> None:
        records = pending.value
        if not should_persist(incoming=records, confirmed=self._reference, force=pending.force):
            _logger.warning("Prevented saving empty %s (had %d items)", key, len(self._reference))
            self._emit(PersistEventKind.BLOCKED_STATE_LOSS, item_count=0, previous_count=len(self._reference))
            return

        try:
            payload = to_jsonable(records, key=key)
        except SerializationError as exc:
            _logger.error("Error saving %s: %s", key, exc)
            self._error = exc
            self._emit(PersistEventKind.SERIALIZATION_ERROR, error=str(exc))
            return

        try:
            await self._storage.write(payload)
        except CacheError as exc:
            _logger.error("Error saving to %s: %s", key, exc)
            self._error = exc
            self._emit(PersistEventKind.WRITE_ERROR, error=str(exc))
            return

        if records or pending.force:
            self._reference = list(records)
        self._error = None
        self._emit(PersistEventKind.WRITTEN, item_count=len(records))

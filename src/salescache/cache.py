"""Process-wide cache handle.

:class:`StateCache` owns the two stores and hands out bindings.  It is the
only place that constructs storage backends; bindings receive them
explicitly.  Each key is owned by exactly one binding: asking for the same
key twice returns the binding that is already mounted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from salescache._codec import DEFAULT_CODEC, Codec
from salescache._constants import LEGACY_MIGRATIONS, RECORD_STORES
from salescache.bindings import CollectionBinding, ScalarBinding
from salescache.bindings._base import EventCallback
from salescache.config import CacheConfig
from salescache.console import RecoveryConsole
from salescache.exceptions import CacheError
from salescache.migration import MigrationReport, migrate_legacy_collections
from salescache.storage.record_store import MemoryRecordStore, RecordStore, SqliteRecordStore
from salescache.storage.sync_store import FileSyncStore, MemorySyncStore, SyncStore

_logger = logging.getLogger(__name__)

_LEGACY_KEY_BY_STORE: dict[str, str] = {store: legacy for legacy, store in LEGACY_MIGRATIONS}


class StateCache:
    """Shared storage handle for every binding in the application.

    Usage::

        async with StateCache(CacheConfig.from_env()) as cache:
            settings = cache.scalar("shopee_settings", {})
            tasks = await cache.collection("tasks")
            tasks.add_item({"id": "t1", "title": "Restock"})
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        sync_store: SyncStore | None = None,
        record_store: RecordStore | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        self._config = config or CacheConfig()
        self._sync_store: SyncStore = (
            sync_store
            if sync_store is not None
            else FileSyncStore(self._config.sync_store_path, quota_bytes=self._config.sync_quota_bytes)
        )
        self._record_store: RecordStore = (
            record_store if record_store is not None else SqliteRecordStore(self._config.record_db_path)
        )
        self._on_event = on_event
        self._scalars: dict[str, ScalarBinding[Any]] = {}
        self._collections: dict[str, CollectionBinding[Any]] = {}

    @classmethod
    def in_memory(cls, config: CacheConfig | None = None, **kwargs: Any) -> StateCache:
        """A cache whose stores live only in this process."""
        config = config or CacheConfig()
        return cls(
            config,
            sync_store=MemorySyncStore(quota_bytes=config.sync_quota_bytes),
            record_store=MemoryRecordStore(),
            **kwargs,
        )

    async def __aenter__(self) -> StateCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def sync_store(self) -> SyncStore:
        return self._sync_store

    @property
    def record_store(self) -> RecordStore:
        return self._record_store

    def key(self, entity: str) -> str:
        """Namespaced logical key for *entity* (``"goals"`` -> ``"shopee_goals"``)."""
        return f"{self._config.namespace}{entity}"

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def scalar(
        self,
        key: str,
        default: Any = None,
        *,
        sanitizer: Callable[[Any], Any] | None = None,
        codec: Codec = DEFAULT_CODEC,
    ) -> ScalarBinding[Any]:
        """Mount (or return the mounted) scalar binding for *key*."""
        binding = self._scalars.get(key)
        if binding is None:
            binding = ScalarBinding(
                self._sync_store,
                key,
                default,
                sanitizer=sanitizer,
                codec=codec,
                save_delay=self._config.save_delay,
                on_event=self._on_event,
            )
            self._scalars[key] = binding
        return binding

    def load(self, key: str, default: Any = None, *, sanitizer: Callable[[Any], Any] | None = None) -> Any:
        return self.scalar(key, default, sanitizer=sanitizer).value

    def save(self, key: str, value: Any) -> None:
        """Debounced, fire-and-forget save through the key's binding."""
        self.scalar(key).set(value)

    async def collection(
        self,
        store_name: str,
        default: Iterable[Any] = (),
        *,
        legacy_key: str | None = None,
        sanitizer: Callable[[list[Any]], list[Any]] | None = None,
        id_field: str | None = None,
        codec: Codec = DEFAULT_CODEC,
    ) -> CollectionBinding[Any]:
        """Mount (or return the mounted) collection binding and load it.

        The legacy mirror key defaults to the store's entry in the migration
        table.
        """
        binding = self._collections.get(store_name)
        if binding is not None:
            return binding
        binding = CollectionBinding(
            store_name,
            self._record_store,
            default=default,
            sync_store=self._sync_store,
            legacy_key=legacy_key or _LEGACY_KEY_BY_STORE.get(store_name),
            save_delay=self._config.save_delay,
            sanitizer=sanitizer,
            id_field=id_field or RECORD_STORES.get(store_name) or "id",
            codec=codec,
            on_event=self._on_event,
        )
        self._collections[store_name] = binding
        await binding.load()
        return binding

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def console(self) -> RecoveryConsole:
        return RecoveryConsole(
            self._sync_store,
            record_store=self._record_store,
            export_dir=self._config.resolved_export_dir,
        )

    async def migrate(self) -> MigrationReport:
        return await migrate_legacy_collections(self._sync_store, self._record_store)

    async def snapshot(self) -> dict[str, list[Any]]:
        """Every record store's contents, e.g. for a remote push."""
        snapshot: dict[str, list[Any]] = {}
        for store in self._record_store.store_names():
            try:
                snapshot[store] = await self._record_store.get_all(store)
            except CacheError as exc:
                _logger.error("Cannot snapshot %s: %s", store, exc)
                snapshot[store] = []
        return snapshot

    async def flush(self) -> None:
        """Fire every pending debounced write and wait for completion."""
        bindings: list[ScalarBinding[Any] | CollectionBinding[Any]] = [
            *self._scalars.values(),
            *self._collections.values(),
        ]
        await asyncio.gather(*(binding.flush() for binding in bindings))

    async def close(self) -> None:
        await self.flush()

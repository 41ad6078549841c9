"""Scalar binding: one value in the synchronous store, shadowed by a backup slot.

Load order is primary slot, backup slot (repairing the primary), then the
default.  Every change restarts a per-key quiet-period timer; when it fires
the value is written to the primary slot and, when non-empty, to the backup
slot.  An empty value never replaces a non-empty one unless :meth:`clear`
asked for it explicitly.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from salescache._codec import DEFAULT_CODEC, Codec
from salescache._constants import DEFAULT_SAVE_DELAY, backup_key
from salescache._debounce import DebouncedWriter
from salescache.bindings._base import BindingBase, EventCallback, PendingWrite
from salescache.exceptions import SerializationError, StorageWriteError
from salescache.state.events import PersistEventKind
from salescache.state.policy import is_empty, item_count, should_persist
from salescache.storage.sync_store import SyncStore, read_slot

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def _empty_like(value: Any) -> Any:
    if isinstance(value, list):
        return []
    if isinstance(value, dict):
        return {}
    return None


class ScalarBinding(BindingBase, Generic[T]):
    """In-memory mirror of one synchronous slot with debounced write-behind.

    Usage::

        goals = ScalarBinding(store, "shopee_goals", [])
        goals.set(lambda prev: [*prev, {"id": "g1", "target": 100}])
        await goals.flush()
    """

    def __init__(
        self,
        store: SyncStore,
        key: str,
        default: T,
        *,
        sanitizer: Callable[[Any], T] | None = None,
        codec: Codec = DEFAULT_CODEC,
        save_delay: float = DEFAULT_SAVE_DELAY,
        on_event: EventCallback | None = None,
    ) -> None:
        super().__init__(key, on_event)
        self._store = store
        self._default = default
        self._sanitizer = sanitizer
        self._codec = codec
        # Last value known to be persisted with data in it; guards empty writes.
        self._confirmed: Any = None
        self._writer: DebouncedWriter[PendingWrite[T]] = DebouncedWriter(self._write, delay=save_delay)
        self._value: T = self.load()

    @property
    def value(self) -> T:
        return self._value

    def load(self) -> T:
        """(Re)load the value from storage, discarding any scheduled write."""
        self._writer.cancel(self._key)
        self._is_loading = True
        result = read_slot(self._store, self._key, codec=self._codec, transform=self._sanitizer)
        if result is None or result.value is None:
            value: T = copy.deepcopy(self._default)
            self._confirmed = None
        else:
            value = result.value
            self._confirmed = value
            if result.from_backup:
                self._emit(PersistEventKind.RESTORED_FROM_BACKUP, item_count=item_count(value))
        self._value = value
        self._is_loading = False
        return value

    def set(self, value: T | Callable[[T], T]) -> None:
        """Replace the value (or derive it from the previous one) and schedule a save."""
        next_value = value(self._value) if callable(value) else value
        self._value = next_value
        self._schedule(self._writer, PendingWrite(next_value))

    def clear(self) -> None:
        """Intentionally empty the value; bypasses the state-loss guard.

        Lists and dicts are persisted empty.  Any other value is reset to the
        default and stored as ``null``, which loads back as the default; the
        backup slot is kept for the recovery console.
        """
        emptied = _empty_like(self._value)
        self._value = copy.deepcopy(self._default) if emptied is None else emptied
        self._schedule(self._writer, PendingWrite(emptied, force=True))

    async def flush(self) -> None:
        await self._writer.flush(self._key)

    async def close(self) -> None:
        await self._writer.close()

    async def _write(self, key: str, pending: PendingWrite[T]) -> None:
        self._persist(pending)

    def _persist(self, pending: PendingWrite[T]) -> None:
        value = pending.value
        if not should_persist(incoming=value, confirmed=self._confirmed, force=pending.force):
            previous = item_count(self._confirmed)
            _logger.warning(
                "Protected %s: prevented saving empty data (had %s items)",
                self._key,
                previous or "some",
            )
            self._emit(PersistEventKind.BLOCKED_STATE_LOSS, item_count=0, previous_count=previous)
            return

        try:
            text = self._codec.encode(value, key=self._key)
        except SerializationError as exc:
            _logger.error("Error saving state for %s: %s", self._key, exc)
            self._error = exc
            self._emit(PersistEventKind.SERIALIZATION_ERROR, error=str(exc))
            return

        try:
            self._store.set_item(self._key, text)
        except StorageWriteError as exc:
            _logger.error("Error saving state for %s: %s", self._key, exc)
            self._error = exc
            self._emit(PersistEventKind.WRITE_ERROR, error=str(exc))
            return

        if not is_empty(value):
            try:
                self._store.set_item(backup_key(self._key), text)
            except StorageWriteError as exc:
                _logger.debug("Backup slot for %s not written: %s", self._key, exc)
                self._emit(PersistEventKind.BACKUP_WRITE_SKIPPED, error=str(exc))
            self._confirmed = value
        elif pending.force:
            self._confirmed = value

        self._error = None
        self._emit(PersistEventKind.WRITTEN, item_count=item_count(value))

"""Primary synchronous key/value store and its shadow backup slots.

The store is deliberately small and string-valued: every value is an
already-encoded payload.  Capacity is counted the way browsers count
``localStorage`` usage (key length plus value length over all slots).
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from salescache._codec import DEFAULT_CODEC, Codec
from salescache._constants import DEFAULT_SYNC_QUOTA_BYTES, backup_key
from salescache.exceptions import SerializationError, StorageQuotaError, StorageWriteError

_logger = logging.getLogger(__name__)


class SyncStore(Protocol):
    """Structural interface of the primary synchronous store."""

    quota_bytes: int

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...

    def used_bytes(self) -> int:
        ...


class MemorySyncStore:
    """In-process synchronous store with a byte quota."""

    def __init__(self, *, quota_bytes: int = DEFAULT_SYNC_QUOTA_BYTES) -> None:
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageWriteError(f"Slot values must be encoded strings, got {type(value).__name__}", key=key)
        current = self._items.get(key)
        delta = len(value) - (len(current) if current is not None else -len(key))
        if self.used_bytes() + delta > self.quota_bytes:
            raise StorageQuotaError(
                f"Quota of {self.quota_bytes} bytes exceeded writing {key} ({len(value)} bytes)",
                key=key,
            )
        previous = current
        self._items[key] = value
        try:
            self._commit()
        except OSError as exc:
            if previous is None:
                self._items.pop(key, None)
            else:
                self._items[key] = previous
            raise StorageWriteError(f"Failed to write {key}: {exc}", key=key) from exc

    def remove_item(self, key: str) -> None:
        if key not in self._items:
            return
        previous = self._items.pop(key)
        try:
            self._commit()
        except OSError as exc:
            self._items[key] = previous
            raise StorageWriteError(f"Failed to remove {key}: {exc}", key=key) from exc

    def keys(self) -> list[str]:
        return list(self._items)

    def used_bytes(self) -> int:
        return sum(len(k) + len(v) for k, v in self._items.items())

    def _commit(self) -> None:
        """Hook for durable subclasses; memory store has nothing to flush."""


class FileSyncStore(MemorySyncStore):
    """Synchronous store persisted as a single JSON object on disk.

    Every mutation rewrites the file through a temporary sibling and
    ``os.replace`` so a crash leaves either the old or the new file.  A file
    that cannot be parsed is moved aside to ``<name>.corrupt`` and the store
    starts empty.
    """

    def __init__(self, path: Path | str, *, quota_bytes: int = DEFAULT_SYNC_QUOTA_BYTES) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self.path = Path(path)
        self._items = self._read_file()

    def _read_file(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            corrupt = self.path.with_name(f"{self.path.name}.corrupt")
            _logger.warning("Sync store %s unreadable (%s); moved to %s", self.path, exc, corrupt)
            try:
                os.replace(self.path, corrupt)
            except OSError:
                _logger.exception("Could not move aside corrupt sync store %s", self.path)
            return {}
        if not isinstance(raw, dict):
            _logger.warning("Sync store %s is not an object; starting empty", self.path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _commit(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        tmp.write_text(json.dumps(self._items, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)


# ---------------------------------------------------------------------------
# Slot helpers shared by the bindings, the migration routine and the console
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SlotRead:
    """Result of a primary-then-backup read."""

    value: Any
    from_backup: bool


def _decode_slot(raw: str, key: str, codec: Codec, transform: Callable[[Any], Any] | None) -> Any:
    value = codec.decode(raw, key=key)
    return transform(value) if transform else value


def read_slot(
    store: SyncStore,
    key: str,
    *,
    codec: Codec = DEFAULT_CODEC,
    transform: Callable[[Any], Any] | None = None,
    heal: bool = True,
) -> SlotRead | None:
    """Read *key* from its primary slot, falling back to the backup slot.

    A primary slot that is missing, unparseable or rejected by *transform*
    falls through to the backup slot.  When the backup is used and *heal*
    is set, its payload is copied verbatim into the primary slot.  Returns
    ``None`` when neither slot yields a value.
    """
    primary = store.get_item(key)
    if primary is not None:
        try:
            return SlotRead(_decode_slot(primary, key, codec, transform), from_backup=False)
        except Exception as exc:
            # Caller transforms may raise anything; treat it as an unreadable slot.
            _logger.warning("Primary slot %s unreadable: %s", key, exc)

    shadow_key = backup_key(key)
    backup = store.get_item(shadow_key)
    if backup is None:
        return None
    try:
        value = _decode_slot(backup, shadow_key, codec, transform)
    except Exception as exc:
        _logger.error("Backup slot %s unreadable: %s", shadow_key, exc)
        return None

    _logger.warning("Recovered %s from backup", key)
    if heal:
        try:
            store.set_item(key, backup)
        except StorageWriteError as exc:
            _logger.warning("Could not repair primary slot %s from backup: %s", key, exc)
    return SlotRead(value, from_backup=True)


def read_legacy_list(store: SyncStore, key: str, *, codec: Codec = DEFAULT_CODEC) -> list[Any] | None:
    """Return the legacy array held under *key*, preferring primary over backup.

    A readable primary slot wins, even if it holds an empty array, so an
    explicit clear is never undone by an older backup.  The backup is only
    consulted when the primary slot is missing or corrupt.  Returns ``None``
    when no slot yields an array.
    """
    for slot in (key, backup_key(key)):
        raw = store.get_item(slot)
        if raw is None:
            continue
        try:
            value = codec.decode(raw, key=slot)
        except SerializationError as exc:
            _logger.warning("Legacy slot %s unreadable: %s", slot, exc)
            continue
        return value if isinstance(value, list) else None
    return None

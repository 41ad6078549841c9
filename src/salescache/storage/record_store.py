"""Asynchronous per-collection record store.

Records are plain JSON objects grouped by store name.  A store either has
an identity field (``"id"`` for most collections) or is positional, in which
case records are addressed by their 1-based insertion sequence.  Collections
keep insertion order; re-putting an existing identity updates it in place.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, TypeVar

from salescache._codec import DEFAULT_CODEC, Codec, to_jsonable
from salescache._constants import RECORD_STORES
from salescache.exceptions import RecordStoreError, SerializationError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

RecordKey = str | int


class RecordStore(Protocol):
    """Structural interface of the asynchronous record store."""

    def store_names(self) -> list[str]:
        ...

    async def get_all(self, store: str) -> list[Any]:
        ...

    async def get(self, store: str, key: RecordKey) -> Any | None:
        ...

    async def put(self, store: str, record: Any) -> RecordKey:
        ...

    async def put_all(self, store: str, records: Sequence[Any]) -> None:
        ...

    async def delete(self, store: str, key: RecordKey) -> None:
        ...

    async def clear(self, store: str) -> None:
        ...

    async def replace_all(self, store: str, records: Sequence[Any]) -> None:
        ...

    async def count(self, store: str) -> int:
        ...


def record_identity(record: Any, field: str, *, store: str = "") -> str:
    """Return the identity of a JSON record as a string."""
    if not isinstance(record, Mapping) or record.get(field) in (None, ""):
        raise RecordStoreError(f"Record in {store} is missing identity field {field!r}", store=store)
    return str(record[field])


class _StoreLayout:
    def __init__(self, stores: Mapping[str, str | None]) -> None:
        self._stores = dict(stores)

    def store_names(self) -> list[str]:
        return list(self._stores)

    def _key_field(self, store: str) -> str | None:
        if store not in self._stores:
            raise RecordStoreError(f"Unknown record store {store!r}", store=store)
        return self._stores[store]


class MemoryRecordStore(_StoreLayout):
    """In-process record store.

    Payloads are kept encoded so callers never share mutable state with the
    store, mirroring the structured-clone semantics of the on-disk store.
    """

    def __init__(
        self,
        *,
        stores: Mapping[str, str | None] = RECORD_STORES,
        codec: Codec = DEFAULT_CODEC,
    ) -> None:
        super().__init__(stores)
        self._codec = codec
        self._rows: dict[str, list[tuple[RecordKey, str]]] = {}
        self._lock = asyncio.Lock()

    def _encode(self, store: str, record: Any) -> tuple[RecordKey | None, str]:
        data = to_jsonable(record, key=store)
        field = self._key_field(store)
        identity = record_identity(data, field, store=store) if field else None
        return identity, self._codec.encode(data, key=store)

    def _upsert(self, store: str, record: Any) -> RecordKey:
        identity, payload = self._encode(store, record)
        rows = self._rows.setdefault(store, [])
        if identity is None:
            seq = (max((int(k) for k, _ in rows), default=0)) + 1
            rows.append((seq, payload))
            return seq
        for index, (key, _) in enumerate(rows):
            if key == identity:
                rows[index] = (identity, payload)
                return identity
        rows.append((identity, payload))
        return identity

    def _find(self, store: str, key: RecordKey) -> int | None:
        field = self._key_field(store)
        wanted: RecordKey = str(key) if field else int(key)
        for index, (row_key, _) in enumerate(self._rows.get(store, [])):
            if row_key == wanted:
                return index
        return None

    async def get_all(self, store: str) -> list[Any]:
        self._key_field(store)
        async with self._lock:
            return [self._codec.decode(payload, key=store) for _, payload in self._rows.get(store, [])]

    async def get(self, store: str, key: RecordKey) -> Any | None:
        async with self._lock:
            index = self._find(store, key)
            if index is None:
                return None
            return self._codec.decode(self._rows[store][index][1], key=store)

    async def put(self, store: str, record: Any) -> RecordKey:
        async with self._lock:
            return self._upsert(store, record)

    async def put_all(self, store: str, records: Sequence[Any]) -> None:
        async with self._lock:
            snapshot = list(self._rows.get(store, []))
            try:
                for record in records:
                    self._upsert(store, record)
            except (RecordStoreError, SerializationError):
                self._rows[store] = snapshot
                raise

    async def delete(self, store: str, key: RecordKey) -> None:
        async with self._lock:
            index = self._find(store, key)
            if index is not None:
                del self._rows[store][index]

    async def clear(self, store: str) -> None:
        self._key_field(store)
        async with self._lock:
            self._rows[store] = []

    async def replace_all(self, store: str, records: Sequence[Any]) -> None:
        self._key_field(store)
        async with self._lock:
            snapshot = self._rows.get(store, [])
            self._rows[store] = []
            try:
                for record in records:
                    self._upsert(store, record)
            except (RecordStoreError, SerializationError):
                self._rows[store] = snapshot
                raise

    async def count(self, store: str) -> int:
        self._key_field(store)
        async with self._lock:
            return len(self._rows.get(store, []))


_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    store TEXT NOT NULL,
    seq INTEGER NOT NULL,
    record_id TEXT,
    payload TEXT NOT NULL,
    PRIMARY KEY (store, seq),
    UNIQUE (store, record_id)
)
"""


class SqliteRecordStore(_StoreLayout):
    """Record store backed by a local SQLite database.

    Blocking sqlite calls run in a worker thread via :func:`asyncio.to_thread`
    with one short-lived connection per operation; every multi-row write is a
    single transaction.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        stores: Mapping[str, str | None] = RECORD_STORES,
        codec: Codec = DEFAULT_CODEC,
        timeout: float = 5.0,
    ) -> None:
        super().__init__(stores)
        self.path = Path(path)
        self._codec = codec
        self._timeout = timeout
        self._init_lock = threading.Lock()
        self._initialized = False

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        self._ensure_schema()
        conn = sqlite3.connect(self.path, timeout=self._timeout)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, timeout=self._timeout)
            try:
                with conn:
                    conn.execute(_SCHEMA)
            finally:
                conn.close()
            self._initialized = True
            _logger.debug("Record store initialized at %s", self.path)

    async def _run(self, store: str, func: Callable[..., T], *args: Any) -> T:
        self._key_field(store)
        try:
            return await asyncio.to_thread(func, store, *args)
        except (sqlite3.Error, OSError) as exc:
            raise RecordStoreError(f"Record store {store} unavailable: {exc}", store=store) from exc

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _upsert(self, conn: sqlite3.Connection, store: str, record: Any, seq: int) -> RecordKey:
        data = to_jsonable(record, key=store)
        field = self._key_field(store)
        identity = record_identity(data, field, store=store) if field else None
        payload = self._codec.encode(data, key=store)
        conn.execute(
            "INSERT INTO records (store, seq, record_id, payload) VALUES (?, ?, ?, ?) "
            "ON CONFLICT (store, record_id) DO UPDATE SET payload = excluded.payload",
            (store, seq, identity, payload),
        )
        return identity if identity is not None else seq

    @staticmethod
    def _next_seq(conn: sqlite3.Connection, store: str) -> int:
        row = conn.execute("SELECT COALESCE(MAX(seq), 0) FROM records WHERE store = ?", (store,)).fetchone()
        return int(row[0]) + 1

    def _where_key(self, store: str, key: RecordKey) -> tuple[str, Any]:
        if self._key_field(store):
            return "record_id = ?", str(key)
        return "seq = ?", int(key)

    def _get_all(self, store: str) -> list[Any]:
        with self._connect() as conn:
            rows = conn.execute("SELECT payload FROM records WHERE store = ? ORDER BY seq", (store,)).fetchall()
        return [self._codec.decode(row[0], key=store) for row in rows]

    def _get(self, store: str, key: RecordKey) -> Any | None:
        clause, value = self._where_key(store, key)
        with self._connect() as conn:
            row = conn.execute(f"SELECT payload FROM records WHERE store = ? AND {clause}", (store, value)).fetchone()
        return None if row is None else self._codec.decode(row[0], key=store)

    def _put(self, store: str, record: Any) -> RecordKey:
        with self._connect() as conn:
            return self._upsert(conn, store, record, self._next_seq(conn, store))

    def _put_all(self, store: str, records: Sequence[Any]) -> None:
        with self._connect() as conn:
            seq = self._next_seq(conn, store)
            for offset, record in enumerate(records):
                self._upsert(conn, store, record, seq + offset)

    def _delete(self, store: str, key: RecordKey) -> None:
        clause, value = self._where_key(store, key)
        with self._connect() as conn:
            conn.execute(f"DELETE FROM records WHERE store = ? AND {clause}", (store, value))

    def _clear(self, store: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM records WHERE store = ?", (store,))

    def _replace_all(self, store: str, records: Sequence[Any]) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM records WHERE store = ?", (store,))
            for seq, record in enumerate(records, start=1):
                self._upsert(conn, store, record, seq)

    def _count(self, store: str) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM records WHERE store = ?", (store,)).fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------

    async def get_all(self, store: str) -> list[Any]:
        return await self._run(store, self._get_all)

    async def get(self, store: str, key: RecordKey) -> Any | None:
        return await self._run(store, self._get, key)

    async def put(self, store: str, record: Any) -> RecordKey:
        return await self._run(store, self._put, record)

    async def put_all(self, store: str, records: Sequence[Any]) -> None:
        await self._run(store, self._put_all, list(records))

    async def delete(self, store: str, key: RecordKey) -> None:
        await self._run(store, self._delete, key)

    async def clear(self, store: str) -> None:
        await self._run(store, self._clear)

    async def replace_all(self, store: str, records: Sequence[Any]) -> None:
        await self._run(store, self._replace_all, list(records))

    async def count(self, store: str) -> int:
        return await self._run(store, self._count)

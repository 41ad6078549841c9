"""Storage backends: the synchronous slot store, the asynchronous record
store, and the tiered policy that combines them for collections."""

from salescache.storage.record_store import MemoryRecordStore, RecordStore, SqliteRecordStore
from salescache.storage.sync_store import FileSyncStore, MemorySyncStore, SyncStore, read_slot
from salescache.storage.tiered import TieredCollectionStorage

__all__ = [
    "FileSyncStore",
    "MemoryRecordStore",
    "MemorySyncStore",
    "RecordStore",
    "SqliteRecordStore",
    "SyncStore",
    "TieredCollectionStorage",
    "read_slot",
]

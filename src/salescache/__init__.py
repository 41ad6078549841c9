"""salescache - Durable local state cache for the sales tracker dashboard."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysalescache")
except PackageNotFoundError:
    __version__ = "0+local"
from salescache.bindings import CollectionBinding, ScalarBinding
from salescache.cache import StateCache
from salescache.cloud import CloudSync
from salescache.config import CacheConfig
from salescache.console import RecoveryConsole
from salescache.exceptions import (
    CacheConfigError,
    CacheError,
    CloudSyncError,
    ConfirmationRequiredError,
    NoBackupError,
    RecordStoreError,
    SerializationError,
    StorageQuotaError,
    StorageWriteError,
)
from salescache.migration import MigrationReport, migrate_legacy_collections
from salescache.models import (
    ExportDocument,
    ImportResult,
    Record,
    SlotStats,
    StorageUsage,
    records_sanitizer,
)
from salescache.state.events import PersistEvent, PersistEventKind
from salescache.storage import (
    FileSyncStore,
    MemoryRecordStore,
    MemorySyncStore,
    SqliteRecordStore,
    TieredCollectionStorage,
)

__all__ = [
    "__version__",
    "CacheConfig",
    "CacheConfigError",
    "CacheError",
    "CloudSync",
    "CloudSyncError",
    "CollectionBinding",
    "ConfirmationRequiredError",
    "ExportDocument",
    "FileSyncStore",
    "ImportResult",
    "MemoryRecordStore",
    "MemorySyncStore",
    "MigrationReport",
    "NoBackupError",
    "PersistEvent",
    "PersistEventKind",
    "Record",
    "RecordStoreError",
    "RecoveryConsole",
    "ScalarBinding",
    "SerializationError",
    "SlotStats",
    "SqliteRecordStore",
    "StateCache",
    "StorageQuotaError",
    "StorageUsage",
    "StorageWriteError",
    "TieredCollectionStorage",
    "migrate_legacy_collections",
    "records_sanitizer",
]

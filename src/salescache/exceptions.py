"""Custom exception hierarchy for salescache."""

from __future__ import annotations


class CacheError(Exception):
    """Base exception for all salescache errors."""


class CacheConfigError(CacheError):
    """Invalid or missing configuration."""


class SerializationError(CacheError):
    """A value could not be encoded, or a stored payload could not be decoded."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class StorageWriteError(CacheError):
    """A synchronous slot write failed."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class StorageQuotaError(StorageWriteError):
    """The synchronous store is full.

    Raised before anything is written, so the previous value of the slot is
    still intact.
    """


class RecordStoreError(CacheError):
    """The asynchronous record store is unavailable or rejected an operation."""

    def __init__(self, message: str, *, store: str = "") -> None:
        self.store = store
        super().__init__(message)


class NoBackupError(CacheError):
    """Restore was requested for a key that has no backup slot."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No backup found for {key}")


class ConfirmationRequiredError(CacheError):
    """A destructive console operation was not confirmed."""


class CloudSyncError(CacheError):
    """Remote push/pull failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)

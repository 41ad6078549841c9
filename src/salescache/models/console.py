"""Models produced by the recovery console."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import Field, computed_field

from salescache._constants import EXPORT_FORMAT_VERSION
from salescache.models._base import CacheBaseModel


class SlotStats(CacheBaseModel):
    """Sizes and item counts of one key's primary and backup slots."""

    key: str
    main_size: int = 0
    backup_size: int = 0
    main_count: int = 0
    backup_count: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_restore(self) -> bool:
        """The backup holds more items than the primary slot."""
        return self.backup_count > self.main_count


class StorageUsage(CacheBaseModel):
    used: int
    total: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentage(self) -> float:
        return (self.used / self.total) * 100 if self.total else 0.0


class ExportDocument(CacheBaseModel):
    """Portable snapshot: ``{exportDate, version, data}``."""

    export_date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    version: int = EXPORT_FORMAT_VERSION
    data: dict[str, Any] = Field(default_factory=dict)


class ImportResult(CacheBaseModel):
    success: bool = True
    counts: dict[str, int] = Field(default_factory=dict)

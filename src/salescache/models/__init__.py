"""Pydantic models for records and recovery console output."""

from salescache.models._base import CacheBaseModel
from salescache.models.console import ExportDocument, ImportResult, SlotStats, StorageUsage
from salescache.models.records import Record, records_sanitizer

__all__ = [
    "CacheBaseModel",
    "ExportDocument",
    "ImportResult",
    "Record",
    "SlotStats",
    "StorageUsage",
    "records_sanitizer",
]

"""Persist outcome signals.

Bindings never raise storage failures to their consumers.  Instead every
load/persist outcome worth knowing about is published as one of these
events to the optional ``on_event`` callback.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class PersistEventKind(StrEnum):
    WRITTEN = "written"
    BLOCKED_STATE_LOSS = "blocked_state_loss"
    SERIALIZATION_ERROR = "serialization_error"
    WRITE_ERROR = "write_error"
    BACKUP_WRITE_SKIPPED = "backup_write_skipped"
    RESTORED_FROM_BACKUP = "restored_from_backup"
    RECOVERED_FROM_LEGACY = "recovered_from_legacy"
    LOAD_ERROR = "load_error"


class PersistEvent(BaseModel):
    """A single load/persist outcome for one key or store."""

    model_config = ConfigDict(frozen=True)

    kind: PersistEventKind
    key: str = Field(..., description="Logical key or record store name")
    item_count: int | None = Field(default=None, description="Items involved, when countable")
    previous_count: int | None = Field(default=None, description="Items held before, for blocked writes")
    error: str | None = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

"""Identity-bearing records and sanitizers for collection bindings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_logger = logging.getLogger(__name__)

R = TypeVar("R", bound="Record")


class Record(BaseModel):
    """A collection entry with an immutable identity.

    Extra fields are kept as-is so records written by newer versions of the
    application survive a round trip through older code.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str = Field(..., description="Unique within its collection")

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not value.strip():
            raise ValueError("id must be a non-empty string")
        return value.strip()


def records_sanitizer(model: type[R]) -> Callable[[list[Any]], list[R]]:
    """Build a sanitizer that validates raw records into *model* instances.

    Entries that fail validation are dropped (and logged) rather than failing
    the whole load.
    """

    def sanitize(raw: list[Any]) -> list[R]:
        if not isinstance(raw, list):
            raise TypeError(f"expected a list of records, got {type(raw).__name__}")
        records: list[R] = []
        for entry in raw:
            if isinstance(entry, model):
                records.append(entry)
                continue
            try:
                records.append(model.model_validate(entry))
            except ValidationError as exc:
                _logger.warning("Dropping invalid %s record: %s", model.__name__, exc.errors()[0]["msg"])
        return records

    return sanitize

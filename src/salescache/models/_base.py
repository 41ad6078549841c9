"""Base model for documents the library reads and writes.

:class:`CacheBaseModel` maps snake_case fields to the camelCase keys used
by exported documents and the remote snapshot (``exportDate``,
``lastUpdated``), and accepts either spelling on input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CacheBaseModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_document(self) -> dict[str, Any]:
        """JSON-ready dict using the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True)

"""State-loss guard policy.

Emptiness is a heuristic: containers are empty when they have no items,
``None`` is empty, and every other value (including ``0``, ``False`` and
``""``) counts as data.
"""

from __future__ import annotations

from collections.abc import Mapping, Sized
from typing import Any

from pydantic import BaseModel


def is_empty(value: Any) -> bool:
    """Return ``True`` for ``None`` and for containers without items."""
    if value is None:
        return True
    if isinstance(value, BaseModel):
        return False
    if isinstance(value, (str, bytes)):
        return False
    if isinstance(value, (Mapping, Sized)):
        return len(value) == 0
    return False


def item_count(value: Any) -> int:
    """Number of items in a list-like value, ``0`` for anything else."""
    if isinstance(value, (list, tuple)):
        return len(value)
    return 0


def should_persist(*, incoming: Any, confirmed: Any, force: bool = False) -> bool:
    """Decide whether *incoming* may overwrite the last confirmed value.

    Policy:
    - an explicit (forced) write always goes through;
    - an empty value may not replace a non-empty confirmed value;
    - everything else is persisted.
    """
    if force:
        return True
    return not (is_empty(incoming) and not is_empty(confirmed))

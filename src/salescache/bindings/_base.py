"""Shared plumbing for the scalar and collection bindings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from salescache._debounce import DebouncedWriter
from salescache.exceptions import SerializationError
from salescache.state.events import PersistEvent, PersistEventKind

_logger = logging.getLogger(__name__)

T = TypeVar("T")

EventCallback = Callable[[PersistEvent], None]


@dataclass(frozen=True)
class PendingWrite(Generic[T]):
    """Snapshot handed to the debounced writer.

    ``force`` marks an intentional empty write that bypasses the state-loss
    guard.
    """

    value: T
    force: bool = False


class BindingBase:
    """Error slot and event publishing common to both bindings."""

    def __init__(self, key: str, on_event: EventCallback | None) -> None:
        self._key = key
        self._on_event = on_event
        self._error: Exception | None = None
        self._is_loading = True

    @property
    def key(self) -> str:
        return self._key

    @property
    def error(self) -> Exception | None:
        """Last load/persist failure, cleared by the next success."""
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    def _schedule(self, writer: DebouncedWriter[PendingWrite[Any]], pending: PendingWrite[Any]) -> bool:
        """Hand *pending* to *writer*; a value that cannot be snapshotted is reported, not raised."""
        try:
            writer.schedule(self._key, pending)
        except SerializationError as exc:
            _logger.error("Error saving state for %s: %s", self._key, exc)
            self._error = exc
            self._emit(PersistEventKind.SERIALIZATION_ERROR, error=str(exc))
            return False
        return True

    def _emit(self, kind: PersistEventKind, **fields: Any) -> None:
        if self._on_event is None:
            return
        event = PersistEvent(kind=kind, key=self._key, **fields)
        try:
            self._on_event(event)
        except Exception:
            _logger.exception("on_event callback failed for %s", self._key)

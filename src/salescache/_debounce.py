"""Per-key debounced write-behind.

Each :meth:`DebouncedWriter.schedule` call replaces the pending snapshot for
its key and restarts that key's quiet-period timer, so a burst of calls
produces exactly one write carrying the last snapshot.  Writes for the same
key never overlap: a write that fires while an earlier one is still in
flight waits for it to finish first.  An in-flight write is never cancelled.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from salescache.exceptions import SerializationError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class DebouncedWriter(Generic[T]):
    """Coalesce bursts of writes per key into one write after a quiet period."""

    def __init__(self, write: Callable[[str, T], Awaitable[None]], *, delay: float) -> None:
        self._write = write
        self._delay = delay
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._pending: dict[str, T] = {}
        self._inflight: dict[str, asyncio.Task[None]] = {}

    @property
    def delay(self) -> float:
        return self._delay

    def schedule(self, key: str, snapshot: T) -> None:
        """Replace the pending snapshot for *key* and restart its timer.

        Must be called from a running event loop.  The snapshot is deep-copied
        so later mutation by the caller cannot leak into the write.  A snapshot
        that cannot be copied raises :class:`SerializationError` and leaves any
        previously scheduled write in place.
        """
        loop = asyncio.get_running_loop()
        try:
            owned = copy.deepcopy(snapshot)
        except Exception as exc:
            raise SerializationError(f"Cannot snapshot pending write for {key}: {exc}", key=key) from exc
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._pending[key] = owned
        self._timers[key] = loop.call_later(self._delay, self._fire, key)

    def pending(self, key: str) -> bool:
        """Whether a write for *key* is scheduled but has not fired yet."""
        return key in self._pending

    def cancel(self, key: str) -> None:
        """Drop the scheduled write for *key*; an in-flight write still completes."""
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._pending.pop(key, None)

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        if key not in self._pending:
            return
        snapshot = self._pending.pop(key)
        previous = self._inflight.get(key)
        task = asyncio.get_running_loop().create_task(self._run(key, snapshot, previous))
        self._inflight[key] = task
        task.add_done_callback(lambda done, key=key: self._forget(key, done))

    def _forget(self, key: str, task: asyncio.Task[None]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _run(self, key: str, snapshot: T, previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await self._write(key, snapshot)
        except Exception:
            # Writers report their own failures; anything reaching here is a bug.
            _logger.exception("Debounced write for %s failed", key)

    async def flush(self, key: str | None = None) -> None:
        """Fire pending writes immediately and wait for every in-flight write."""
        keys = [key] if key is not None else list(set(self._pending) | set(self._inflight))
        for k in keys:
            handle = self._timers.pop(k, None)
            if handle is not None:
                handle.cancel()
            if k in self._pending:
                self._fire(k)
        tasks = [self._inflight[k] for k in keys if k in self._inflight]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        await self.flush()

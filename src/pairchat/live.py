"""Cancellable live views over the document store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Async iterator of full snapshots, one per change.

    Every snapshot is the complete current result, never a delta, so a
    consumer that falls behind only sees the newest one. The
    consumer owns the lifetime and must call ``close()`` (or use
    ``async with``) when it stops listening.
    """

    def __init__(
        self,
        transform: Callable[[Any], Any] | None = None,
        on_close: Callable[[Subscription], None] | None = None,
    ):
        self._transform = transform
        self._on_close = on_close
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.latest: Any = None

    @classmethod
    def of(cls, snapshot: Any) -> Subscription:
        """A subscription that delivers one fixed snapshot and never changes."""
        sub = cls()
        sub.push(snapshot)
        return sub

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, snapshot: Any):
        if self._closed:
            return
        if self._transform is not None:
            snapshot = self._transform(snapshot)
        self.latest = snapshot
        # Only the newest snapshot matters; drop any the consumer has not read
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)
        logger.debug("Subscription closed")

    async def next(self, timeout: float | None = None) -> Any:
        """Wait for the next snapshot.

        Raises StopAsyncIteration once the subscription is closed and drained.
        """
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            # Leave the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Any:
        return await self.next()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info):
        self.close()

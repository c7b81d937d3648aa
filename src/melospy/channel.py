"""Unbounded, closable async channel."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class Channel(Generic[T]):
    """Single-producer-side unbounded queue that can be closed.

    ``send`` never blocks and is a no-op once the channel is closed.
    Receivers drain everything sent before ``close`` and then see the end
    of the stream (``recv`` returns None, ``async for`` stops).
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: T) -> bool:
        """Queue an item. Returns False if the channel is closed."""
        if self._closed:
            return False
        self._queue.put_nowait(item)
        return True

    def close(self) -> None:
        """Close the channel; pending items stay readable."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def recv(self) -> T | None:
        """Wait for the next item, or None once closed and drained."""
        if self._drained:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            return None
        return item  # type: ignore[return-value]

    def try_recv(self) -> T | None:
        """Return the next queued item without waiting, or None."""
        if self._drained:
            return None
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self._drained = True
            return None
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            item = await self.recv()
            if item is None:
                return
            yield item

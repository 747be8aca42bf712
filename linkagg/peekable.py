"""Bounded async channel and a receiver that can peek at the next item."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Deque, Generic, TypeVar

T = TypeVar("T")

_NOTHING = object()


class EmptyError(Exception):
    """No item is available right now."""


class DisconnectedError(Exception):
    """The channel is closed and holds no more items."""


class NoMatchError(Exception):
    """The next item does not fulfil the condition."""


class Channel(Generic[T]):
    """A bounded multi-producer queue that can be closed.

    After closing, no more items are accepted, but queued ones can still be
    received.
    """

    def __init__(self, capacity: int = 1) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self.capacity = capacity
        self._items: Deque[T] = deque()
        self._closed = False
        self._changed_event = asyncio.Event()

    def _notify(self) -> None:
        event = self._changed_event
        self._changed_event = asyncio.Event()
        event.set()

    async def _changed(self) -> None:
        await self._changed_event.wait()

    @property
    def closed(self) -> bool:
        """Whether the channel has been closed."""
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    async def send(self, item: T) -> None:
        """Queue an item, waiting for space if the channel is full."""
        while True:
            if self._closed:
                raise DisconnectedError("channel closed")
            if len(self._items) < self.capacity:
                self._items.append(item)
                self._notify()
                return
            await self._changed()

    def try_send(self, item: T) -> None:
        """Queue an item; raises ``asyncio.QueueFull`` if there is no space."""
        if self._closed:
            raise DisconnectedError("channel closed")
        if len(self._items) >= self.capacity:
            raise asyncio.QueueFull
        self._items.append(item)
        self._notify()

    def close(self) -> None:
        """Stop accepting items and wake all waiters."""
        self._closed = True
        self._notify()

    async def recv(self) -> T:
        """Receive the next item, waiting until one arrives."""
        while True:
            if self._items:
                item = self._items.popleft()
                self._notify()
                return item
            if self._closed:
                raise DisconnectedError("channel closed")
            await self._changed()

    def try_recv(self) -> T:
        """Receive the next item if one is available immediately."""
        if self._items:
            item = self._items.popleft()
            self._notify()
            return item
        if self._closed:
            raise DisconnectedError("channel closed")
        raise EmptyError("channel empty")


class PeekableReceiver(Generic[T]):
    """Receives from a channel and allows looking at the next item first."""

    def __init__(self, channel: Channel[T]) -> None:
        self._channel = channel
        self._peeked: object = _NOTHING

    def _take_peeked(self):
        item, self._peeked = self._peeked, _NOTHING
        return item

    async def recv(self) -> T:
        """Receive the next item."""
        if self._peeked is not _NOTHING:
            return self._take_peeked()
        return await self._channel.recv()

    def try_recv(self) -> T:
        """Receive the next item if one is available immediately."""
        if self._peeked is not _NOTHING:
            return self._take_peeked()
        return self._channel.try_recv()

    async def peek(self) -> T:
        """Wait for the next item and return it without consuming it."""
        if self._peeked is _NOTHING:
            self._peeked = await self._channel.recv()
        return self._peeked

    def try_peek(self) -> T:
        """Return the next item without consuming it, if available now."""
        if self._peeked is _NOTHING:
            self._peeked = self._channel.try_recv()
        return self._peeked

    async def recv_if(self, cond: Callable[[T], bool]) -> T:
        """Receive the next item if it fulfils ``cond``; otherwise leave it."""
        item = await self.peek()
        if not cond(item):
            raise NoMatchError("condition not fulfilled")
        return self.try_recv()

    def try_recv_if(self, cond: Callable[[T], bool]) -> T:
        """Like ``recv_if`` but without waiting."""
        if not cond(self.try_peek()):
            raise NoMatchError("condition not fulfilled")
        return self.try_recv()
"""Bounded many-producer / single-consumer result channel.

Workers push scraped items through a Sender; the collector drains them
through the Receiver. The channel is built on asyncio.Queue with a fixed
maxsize, so a full channel suspends the sending worker (and only that
worker) until the collector catches up.

Lifecycle:
- Every producer holds its own Sender (``clone()`` of the driver's). The
  channel ends once every Sender has been closed and the queue is drained.
- If the Receiver is closed first, pending and future sends raise
  CollectorClosedException.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

from pagesift.common.exceptions import CollectorClosedException

T = TypeVar("T")

DEFAULT_CAPACITY = 100


class _EndOfStream:
    """Queue marker put by the last closing Sender."""


_END = _EndOfStream()


class ResultChannel(Generic[T]):
    """Shared state behind one Sender family and one Receiver.

    Example:
        channel: ResultChannel[str] = ResultChannel(capacity=100)
        sender, receiver = channel.sender(), channel.receiver()
        async with sender.clone() as worker_sender:
            await worker_sender.send("https://example.com")
        await sender.aclose()
        async for item in receiver:
            ...
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Channel capacity must be positive: {capacity}")
        self.capacity = capacity
        self._queue: asyncio.Queue[T | _EndOfStream] = asyncio.Queue(
            maxsize=capacity
        )
        self._open_senders = 0
        self._receiver_closed = False
        self._finished = False

    @property
    def receiver_closed(self) -> bool:
        return self._receiver_closed

    def sender(self) -> Sender[T]:
        """Create a new open Sender for this channel."""
        self._open_senders += 1
        return Sender(self)

    def receiver(self) -> Receiver[T]:
        return Receiver(self)

    async def _send(self, item: T) -> None:
        if self._receiver_closed:
            raise CollectorClosedException()
        await self._queue.put(item)
        if self._receiver_closed:
            # Woken by a discard after the receiver went away; keep waking
            # the remaining blocked senders so none stays suspended.
            self._discard_pending()
            raise CollectorClosedException()

    async def _release_sender(self) -> None:
        self._open_senders -= 1
        if self._open_senders == 0 and not self._receiver_closed:
            await self._queue.put(_END)

    async def _recv(self) -> T | None:
        if self._finished or self._receiver_closed:
            return None
        item = await self._queue.get()
        if isinstance(item, _EndOfStream):
            self._finished = True
            return None
        return item

    def _close_receiver(self) -> None:
        if self._receiver_closed:
            return
        self._receiver_closed = True
        self._discard_pending()

    def _discard_pending(self) -> None:
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break


class Sender(Generic[T]):
    """One producer's handle on a ResultChannel.

    Use as an async context manager so the handle is released on every exit
    path; the channel only ends once all handles are released.
    """

    def __init__(self, channel: ResultChannel[T]) -> None:
        self._channel = channel
        self._closed = False

    def clone(self) -> Sender[T]:
        """Return a new, independently closable Sender for the same channel."""
        if self._closed:
            raise RuntimeError("Cannot clone a closed sender")
        return self._channel.sender()

    async def send(self, item: T) -> None:
        """Send an item, suspending while the channel is full.

        Raises:
            CollectorClosedException: If the receiver has been closed.
            RuntimeError: If this Sender was already closed.
        """
        if self._closed:
            raise RuntimeError("Cannot send on a closed sender")
        await self._channel._send(item)

    async def aclose(self) -> None:
        """Release this handle. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._channel._release_sender()

    async def __aenter__(self) -> Sender[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class Receiver(Generic[T]):
    """The single consumer's handle on a ResultChannel."""

    def __init__(self, channel: ResultChannel[T]) -> None:
        self._channel = channel

    async def recv(self) -> T | None:
        """Receive the next item.

        Returns:
            The next item, or None once every Sender is closed and all items
            have been received (or the receiver was closed).
        """
        return await self._channel._recv()

    def close(self) -> None:
        """Stop receiving. Blocked and future sends fail."""
        self._channel._close_receiver()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            item = await self.recv()
            if item is None:
                return
            yield item

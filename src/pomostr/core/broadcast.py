"""
In-process fan-out channels for live values.

[Broadcast][pomostr.core.broadcast.Broadcast] delivers every published item
to each attached listener through its own bounded ``asyncio.Queue``. A full
queue drops the *newest* item for that listener only, increments
``BROADCAST_DROPPED{channel}``, and never blocks the producer. Listeners that
attach late see nothing from the past.

``publish()`` may be called from any thread. Each listener remembers the
event loop it was created on; items published from another thread are
handed to that loop with ``call_soon_threadsafe()``, so the queue is only
ever touched from its own loop and per-listener order is preserved.

[Observable][pomostr.core.broadcast.Observable] holds a current value:
listening yields that value first and then every subsequent change.

Examples:
    ```python
    events: Broadcast[RelayEvent] = Broadcast("events", maxsize=1000)

    async with events.listen() as listener:
        async for item in listener:
            ...
    ```
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Generic, TypeVar

from .metrics import BROADCAST_DROPPED


T = TypeVar("T")

_CLOSED = object()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Listener(Generic[T]):
    """One consumer's view of a [Broadcast][pomostr.core.broadcast.Broadcast].

    Registered at creation time, so nothing published after
    [Broadcast.listen()][pomostr.core.broadcast.Broadcast.listen] returns is
    missed. Iterate with ``async for`` or call
    [get()][pomostr.core.broadcast.Listener.get]; detach with
    [close()][pomostr.core.broadcast.Listener.close] or by leaving the
    ``async with`` block.
    """

    def __init__(self, channel: Broadcast[T], maxsize: int) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._loop = _running_loop()
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of items queued and not yet consumed."""
        return self._queue.qsize()

    def _offer(self, item: T) -> bool:
        """Queue *item*, hopping to the listener's loop when called off it.

        A cross-thread hand-off reports True; an overflow there is still
        counted in ``dropped`` and the metric.
        """
        loop = self._loop
        if loop is None or _running_loop() is loop:
            return self._put(item)
        try:
            loop.call_soon_threadsafe(self._put, item)
        except RuntimeError:
            # Loop already closed
            return False
        return True

    def _put(self, item: T) -> bool:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self.dropped += 1
            BROADCAST_DROPPED.labels(channel=self._channel.name).inc()
            return False
        return True

    def _end(self) -> None:
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The reader checks the flag once the backlog is drained
            pass

    async def get(self) -> T:
        """Return the next item.

        Raises:
            StopAsyncIteration: If the listener or its channel was closed
                and the backlog is drained.
        """
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """Detach from the channel. Idempotent."""
        self._channel._detach(self)
        self._end()

    def __aiter__(self) -> Listener[T]:
        return self

    async def __anext__(self) -> T:
        return await self.get()

    async def __aenter__(self) -> Listener[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class Broadcast(Generic[T]):
    """Bounded multi-consumer channel with drop-newest overflow.

    Args:
        name: Channel name used as the ``channel`` metric label.
        maxsize: Per-listener queue capacity.
    """

    def __init__(self, name: str, *, maxsize: int = 1000) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.name = name
        self.maxsize = maxsize
        self._listeners: list[Listener[T]] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def listen(self) -> Listener[T]:
        """Attach a new listener that receives items published from now on."""
        listener = Listener(self, self.maxsize)
        with self._lock:
            closed = self._closed
            if not closed:
                self._listeners.append(listener)
        if closed:
            listener._end()
        return listener

    def publish(self, item: T) -> int:
        """Offer *item* to every listener without blocking. Safe from any thread.

        Returns:
            Number of listeners that accepted (or were handed) the item.
        """
        with self._lock:
            listeners = list(self._listeners)
        return sum(1 for listener in listeners if listener._offer(item))

    def close(self) -> None:
        """End every listener's iteration after its backlog. Idempotent."""
        with self._lock:
            self._closed = True
            listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener._end()

    def _detach(self, listener: Listener[T]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)


class Observable(Generic[T]):
    """A current value plus a broadcast of its changes.

    Setting an equal value is not a change and is not broadcast.
    """

    def __init__(self, name: str, initial: T, *, maxsize: int = 100) -> None:
        self._value = initial
        self._changes: Broadcast[T] = Broadcast(name, maxsize=maxsize)

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        """Replace the value; return True if it changed."""
        if value == self._value:
            return False
        self._value = value
        self._changes.publish(value)
        return True

    def listen(self) -> Listener[T]:
        """Attach a listener whose first item is the current value."""
        listener = self._changes.listen()
        listener._offer(self._value)
        return listener

    async def wait_for(self, predicate: Callable[[T], bool]) -> T:
        """Wait until the value satisfies *predicate* and return it.

        Bound the wait with ``asyncio.timeout()`` at the call site.
        """
        if predicate(self._value):
            return self._value
        async with self.listen() as listener:
            async for value in listener:
                if predicate(value):
                    return value
        return self._value

    def close(self) -> None:
        self._changes.close()

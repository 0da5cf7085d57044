"""In-process publish/subscribe for sync events.

This module provides:
- EventBus: Ordered listener registry with isolated delivery
- Subscription: Handle that owns its own unsubscription

A device wires two buses: one for transport events (SyncEvent) and one for
SyncManager state changes (SyncOperationState).

Delivery rules:
    - Listeners are called in registration order
    - Registering the same listener twice delivers twice
    - A listener that raises is logged and skipped; the publisher and the
      remaining listeners are unaffected
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class Subscription(Generic[T]):
    """Registration of one listener on a bus.

    Usage:
        with bus.subscribe(on_event):
            ...  # listener active
        # listener removed

        sub = bus.subscribe(on_event)
        sub.unsubscribe()
    """

    def __init__(self, bus: EventBus[T], listener: Listener[T]) -> None:
        self._bus = bus
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        """Check if the listener is still registered through this handle."""
        return self._active

    @property
    def listener(self) -> Listener[T]:
        return self._listener

    def unsubscribe(self) -> None:
        """Remove the listener. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._bus.unsubscribe(self._listener)

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class EventBus(Generic[T]):
    """Ordered publish/subscribe channel.

    Attributes:
        name: Label used in log messages.
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._listeners: list[Listener[T]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener[T]) -> Subscription[T]:
        """Register a listener.

        Args:
            listener: Called with every published event.

        Returns:
            Subscription handle.
        """
        self._listeners.append(listener)
        return Subscription(self, listener)

    def unsubscribe(self, listener: Listener[T]) -> None:
        """Remove one registration of a listener (no-op if absent)."""
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def publish(self, event: T) -> None:
        """Deliver an event to every listener registered at call time."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Error in %s listener %r", self.name, listener)

    async def stream(self, maxsize: int = 0) -> AsyncIterator[T]:
        """Iterate over events as they are published.

        The subscription lives as long as the generator; close it with
        contextlib.aclosing to remove the subscription promptly.

        Usage:
            async with contextlib.aclosing(bus.stream()) as events:
                async for event in events:
                    if event.type is SyncEventType.DISCONNECTED:
                        break
        """
        queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)

        def enqueue(event: T) -> None:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Dropping %s event, consumer queue full", self.name)

        with self.subscribe(enqueue):
            while True:
                yield await queue.get()

"""Synchronous change notification.

Every state holder owns a :class:`Notifier` and publishes each new value
through it.  Listeners run synchronously, in subscription order, on the
thread (event loop) that published the change.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class Notifier(Generic[T]):
    """A minimal publish/subscribe channel for one kind of value."""

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener[T]) -> Unsubscribe:
        """Register *listener* and return a callable that removes it."""
        if self._closed:
            return lambda: None
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, value: T) -> None:
        if self._closed:
            _logger.debug("Dropped %s notification after close", self._name or "notifier")
            return
        # Copy so listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            listener(value)

    def close(self) -> None:
        """Drop all listeners; later publishes are ignored."""
        self._closed = True
        self._listeners.clear()

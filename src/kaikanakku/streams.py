"""Consultas "vivas": valor actual al suscribirse y nuevo valor en cada cambio."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_UNSET = object()


class ChangeSource:
    """Fan-out of "data changed" notifications to registered listeners."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def notify(self) -> None:
        """Call every listener; listener errors are logged, not propagated."""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Listener failed on %s change", self.name)


class Subscription:
    """Handle returned by :meth:`LiveQuery.subscribe`."""

    def __init__(self, source: ChangeSource, deliver: Callable[[], None]) -> None:
        self._source = source
        self._deliver = deliver
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _emit(self) -> None:
        # Fetch + deliver under the lock so a disposed subscription never
        # emits and emissions never interleave.
        with self._lock:
            if self._active:
                self._deliver()

    def dispose(self) -> None:
        """Stop delivery. Safe to call more than once."""
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._source.remove_listener(self._emit)


class LiveQuery(Generic[T]):
    """A re-issuable query bound to a change source.

    Args:
        fetch: Runs the query and returns its current result.
        source: Notifications that mean the result may have changed.
        distinct: Skip emissions equal to the previous one.
    """

    def __init__(
        self,
        fetch: Callable[[], T],
        source: ChangeSource,
        *,
        distinct: bool = False,
    ) -> None:
        self._fetch = fetch
        self._source = source
        self._distinct = distinct

    def current(self) -> T:
        """Run the query once, without subscribing."""
        return self._fetch()

    def map(self, func: Callable[[T], object], *, distinct: bool = True) -> LiveQuery:
        """Derived query applying ``func`` to each result."""
        fetch = self._fetch
        return LiveQuery(lambda: func(fetch()), self._source, distinct=distinct)

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        """Deliver the current value now and a fresh one after every change."""
        last: list[object] = [_UNSET]

        def deliver() -> None:
            value = self._fetch()
            if self._distinct and last[0] is not _UNSET and last[0] == value:
                return
            last[0] = value
            callback(value)

        subscription = Subscription(self._source, deliver)
        self._source.add_listener(subscription._emit)
        subscription._emit()
        return subscription

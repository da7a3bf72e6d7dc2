"""Filtros del historial: busqueda, solo favoritos y orden."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace

from kaikanakku.model import HistoryRecord, SortOrder
from kaikanakku.repository import HistoryRepository
from kaikanakku.streams import LiveQuery, Subscription

logger = logging.getLogger(__name__)

HistoryObserver = Callable[[list[HistoryRecord]], None]


@dataclass(frozen=True)
class HistoryFilter:
    """Filter state for one history session. Never persisted."""

    sort_order: SortOrder = SortOrder.BY_DATE
    search_query: str = ""
    favorites_only: bool = False


def select_stream(
    repository: HistoryRepository, history_filter: HistoryFilter
) -> LiveQuery[list[HistoryRecord]]:
    """Pick the single upstream query for a filter state.

    A non-empty search wins over favorites-only, which wins over the
    sorted full list. Search and favorites are not combined, and the sort
    order only applies to the full list.
    """
    if history_filter.search_query:
        return repository.search(history_filter.search_query)
    if history_filter.favorites_only:
        return repository.favorites()
    return repository.history(history_filter.sort_order or SortOrder.BY_DATE)


class HistoryQueryComposer:
    """Republishes exactly one history stream chosen by the current filters.

    Every filter change drops the active upstream subscription before
    subscribing to the newly selected stream, so results never mix. Filter
    changes are serialized by a lock; once the old subscription is
    disposed it cannot emit again.

    Args:
        repository: Source of the history streams.
        initial: Starting filter state (defaults: by date, no search, all).
    """

    def __init__(
        self,
        repository: HistoryRepository,
        initial: HistoryFilter | None = None,
    ) -> None:
        self._repository = repository
        self._filter = initial or HistoryFilter()
        self._lock = threading.RLock()
        self._publish_lock = threading.RLock()
        self._observers: list[HistoryObserver] = []
        self._upstream: Subscription | None = None
        self._generation = 0
        self._latest: list[HistoryRecord] | None = None
        self._closed = False
        self._reselect()

    @property
    def filter(self) -> HistoryFilter:
        return self._filter

    @property
    def latest(self) -> list[HistoryRecord] | None:
        """Last list published, or None before the first emission."""
        return self._latest

    @property
    def upstream(self) -> Subscription | None:
        return self._upstream

    def set_search_query(self, query: str) -> None:
        self._apply(search_query=query or "")

    def set_favorites_only(self, favorites_only: bool) -> None:
        self._apply(favorites_only=bool(favorites_only))

    def set_sort_order(self, sort_order: SortOrder | None) -> None:
        self._apply(sort_order=SortOrder(sort_order or SortOrder.BY_DATE))

    def observe(self, observer: HistoryObserver) -> Callable[[], None]:
        """Register an observer; it gets the latest list right away if any.

        Returns:
            A callable that unregisters the observer.
        """
        with self._publish_lock:
            self._observers.append(observer)
            latest = self._latest
            if latest is not None:
                observer(latest)

        def remove() -> None:
            with self._publish_lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return remove

    def close(self) -> None:
        """Drop the upstream subscription and every observer."""
        with self._lock:
            self._closed = True
            if self._upstream is not None:
                self._upstream.dispose()
                self._upstream = None
            with self._publish_lock:
                self._generation += 1
                self._observers.clear()

    def _apply(self, **changes: object) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("HistoryQueryComposer is closed")
            updated = replace(self._filter, **changes)
            if updated == self._filter:
                return
            self._filter = updated
            self._reselect()

    def _reselect(self) -> None:
        with self._lock:
            if self._upstream is not None:
                self._upstream.dispose()
                self._upstream = None
            with self._publish_lock:
                self._generation += 1
                generation = self._generation
            logger.debug("History filter now %s", self._filter)
            stream = select_stream(self._repository, self._filter)
            self._upstream = stream.subscribe(
                lambda records: self._publish(generation, records)
            )

    def _publish(self, generation: int, records: list[HistoryRecord]) -> None:
        with self._publish_lock:
            if generation != self._generation:
                return
            self._latest = records
            observers = list(self._observers)
            for observer in observers:
                if generation != self._generation:
                    return
                observer(records)

"""Acceso al historial: lecturas en vivo, escrituras en un worker dedicado."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from pathlib import Path

from kaikanakku.model import HistoryRecord, SortOrder
from kaikanakku.settings import SettingsRepository
from kaikanakku.storage import SQLiteStore
from kaikanakku.streams import LiveQuery

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


class HistoryRepository:
    """History entries over a :class:`SQLiteStore`.

    Writes go through a single worker thread, so they never block the
    caller and are applied one at a time in submission order. A favorite
    toggle that lands after a delete of the same entry updates nothing.

    Args:
        store: Backing SQLite store.
        executor: Worker for writes; a dedicated single thread by default.
    """

    def __init__(self, store: SQLiteStore, executor: Executor | None = None) -> None:
        self._store = store
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="history-writer"
        )

    @property
    def store(self) -> SQLiteStore:
        return self._store

    # --- lecturas reactivas ---

    def history(
        self, sort_order: SortOrder = SortOrder.BY_DATE
    ) -> LiveQuery[list[HistoryRecord]]:
        order = SortOrder(sort_order)
        return self._live(lambda: self._store.history(order))

    def favorites(self) -> LiveQuery[list[HistoryRecord]]:
        return self._live(self._store.favorites)

    def search(self, query: str) -> LiveQuery[list[HistoryRecord]]:
        return self._live(lambda: self._store.search(query))

    def recent(self, limit: int = RECENT_LIMIT) -> LiveQuery[list[HistoryRecord]]:
        """Ultimas entradas, para mostrar junto al conversor."""
        return self._live(lambda: self._store.recent(limit))

    def _live(
        self, fetch: Callable[[], list[HistoryRecord]]
    ) -> LiveQuery[list[HistoryRecord]]:
        return LiveQuery(fetch, self._store.history_changes)

    def get(self, record_id: int) -> HistoryRecord | None:
        return self._store.get(record_id)

    # --- escrituras (worker) ---

    def insert(self, record: HistoryRecord) -> Future[int | None]:
        logger.info(
            "Saving history entry %r -> %r", record.input_text, record.output_text
        )
        return self._executor.submit(self._store.insert, record)

    def update(self, record: HistoryRecord) -> Future[bool]:
        return self._executor.submit(self._store.update, record)

    def set_favorite(self, record: HistoryRecord, is_favorite: bool) -> Future[bool]:
        return self.update(record.with_favorite(is_favorite))

    def delete(self, record: HistoryRecord) -> Future[bool]:
        return self._executor.submit(self._store.delete, record)

    def delete_all(self) -> Future[int]:
        logger.info("Clearing all history")
        return self._executor.submit(self._store.delete_all)

    def delete_older_than(self, cutoff_millis: int) -> int:
        """Synchronous delete, meant for the retention sweep thread."""
        deleted = self._store.delete_older_than(cutoff_millis)
        logger.info("Deleted %d history entries older than %d", deleted, cutoff_millis)
        return deleted

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)


_lock = threading.Lock()
_store: SQLiteStore | None = None
_history: HistoryRepository | None = None
_settings: SettingsRepository | None = None


def _get_store(db_path: Path) -> SQLiteStore:
    # llamar con _lock tomado
    global _store
    if _store is None:
        _store = SQLiteStore(db_path)
    elif _store.db_path != db_path:
        raise RuntimeError(
            f"Repositories already bound to {_store.db_path}, not {db_path}"
        )
    return _store


def get_history_repository(db_path: Path) -> HistoryRepository:
    """Process-wide history repository, created on first use."""
    global _history
    if _history is None:
        with _lock:
            if _history is None:
                _history = HistoryRepository(_get_store(db_path))
    return _history


def get_settings_repository(db_path: Path) -> SettingsRepository:
    """Process-wide settings repository, created on first use."""
    global _settings
    if _settings is None:
        with _lock:
            if _settings is None:
                _settings = SettingsRepository(_get_store(db_path))
    return _settings


def reset_repositories() -> None:
    """Shut down and forget the process-wide repositories."""
    global _store, _history, _settings
    with _lock:
        if _history is not None:
            _history.shutdown()
        if _settings is not None:
            _settings.shutdown()
        _store = None
        _history = None
        _settings = None

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Any

import pytest

from kaikanakku.model import HistoryRecord
from kaikanakku.repository import HistoryRepository
from kaikanakku.settings import SettingsRepository
from kaikanakku.storage import SQLiteStore

DAY_MS = 86_400_000
NOW_MS = 1_760_000_000_000


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "kaikanakku.sqlite3")


@pytest.fixture
def history(store: SQLiteStore) -> HistoryRepository:
    return HistoryRepository(store, executor=InlineExecutor())


@pytest.fixture
def settings(store: SQLiteStore) -> SettingsRepository:
    return SettingsRepository(store, executor=InlineExecutor())


def make_record(
    input_text: str,
    output_text: str,
    total_cm: float,
    timestamp: int = NOW_MS,
    is_favorite: bool = False,
) -> HistoryRecord:
    return HistoryRecord(
        input_text=input_text,
        output_text=output_text,
        total_cm=total_cm,
        timestamp=timestamp,
        is_favorite=is_favorite,
    )

"""Borrado automatico del historial viejo, una vez por dia."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from kaikanakku.model import SweepResult, now_millis
from kaikanakku.repository import HistoryRepository
from kaikanakku.settings import SettingsRepository
from kaikanakku.storage import SQLiteStore
from kaikanakku.units import MILLIS_PER_DAY

logger = logging.getLogger(__name__)

LAST_RUN_KEY = "retention.last_run"
DAY_SECONDS = 86_400.0
POLL_SECONDS = 3_600.0


def retention_cutoff(now: int, days: int) -> int:
    """Epoch millis before which entries are expired."""
    return now - days * MILLIS_PER_DAY


def run_retention_sweep(
    history: HistoryRepository,
    settings: SettingsRepository,
    now: int | None = None,
) -> SweepResult:
    """Delete entries older than the configured number of days.

    Zero or negative days means auto-delete is off: nothing is deleted and
    the sweep still succeeds. Any failure is logged and reported as
    RETRY so the scheduler tries again later; nothing propagates.

    Args:
        history: Repository whose old entries are removed.
        settings: Source of ``auto_delete_days``, read at sweep time.
        now: Current epoch millis; the wall clock when omitted.

    Returns:
        SUCCESS or RETRY.
    """
    logger.info("Auto-delete sweep started")
    try:
        days = settings.load().auto_delete_days
        if days <= 0:
            logger.info("Auto-delete disabled (days=%d)", days)
            return SweepResult.SUCCESS
        cutoff = retention_cutoff(now_millis() if now is None else now, days)
        logger.info("Removing history entries older than %d days", days)
        history.delete_older_than(cutoff)
    except Exception:
        logger.exception("Auto-delete sweep failed, will retry")
        return SweepResult.RETRY
    return SweepResult.SUCCESS


class DailyScheduler:
    """Runs a job at most once per period from a background thread.

    The time of the last successful run is kept in the store, so a missed
    day (app closed, machine asleep) runs once on the next poll; older
    missed periods are not replayed. A RETRY result keeps the previous
    last-run time, so the job is attempted again on the next poll.

    Args:
        job: Callable returning a SweepResult.
        store: Where the last-run time is recorded.
        period: Seconds between runs.
        poll_interval: Seconds between due-checks.
        clock: Epoch-millis source.
    """

    def __init__(
        self,
        job: Callable[[], SweepResult],
        store: SQLiteStore,
        *,
        period: float = DAY_SECONDS,
        poll_interval: float = POLL_SECONDS,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._job = job
        self._store = store
        self._period_ms = int(period * 1000)
        self._poll_interval = poll_interval
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def last_run(self) -> int | None:
        raw = self._store.load_config().get(LAST_RUN_KEY)
        try:
            return int(raw) if raw is not None else None
        except ValueError:
            logger.warning("Ignoring invalid %s value %r", LAST_RUN_KEY, raw)
            return None

    def is_due(self, now: int) -> bool:
        last = self.last_run()
        return last is None or now - last >= self._period_ms

    def run_pending(self, now: int | None = None) -> SweepResult | None:
        """One poll step: run the job if due.

        Returns:
            The job result, or None when it was not due.
        """
        now = self._clock() if now is None else now
        if not self.is_due(now):
            return None
        result = self._job()
        if result is SweepResult.SUCCESS:
            self._store.save_config({LAST_RUN_KEY: str(now)})
        else:
            logger.warning("Scheduled job asked for retry")
        return result

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="retention-scheduler", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_pending()
            except Exception:
                logger.exception("Scheduler poll failed")
            self._stop.wait(self._poll_interval)


def register_daily_sweep(
    history: HistoryRepository,
    settings: SettingsRepository,
    *,
    poll_interval: float = POLL_SECONDS,
) -> DailyScheduler:
    """Start the background auto-delete schedule."""
    scheduler = DailyScheduler(
        lambda: run_retention_sweep(history, settings),
        history.store,
        poll_interval=poll_interval,
    )
    scheduler.start()
    return scheduler

"""
APScheduler-based sweep of due recurring expenses.

Runs ``process_recurring_expenses`` once at startup and then on a fixed
interval (24 hours by default) for the lifetime of the process. A failing
sweep is logged and simply retried at the next tick.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.database import AsyncSessionLocal
from app.utils.recurring_processor import Clock, SweepResult, process_recurring_expenses

logger = logging.getLogger(__name__)


class RecurringExpenseScheduler:
    """Owns the session factory and clock used by the background sweep."""

    job_id = "process_recurring_expenses"

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        clock: Clock = datetime.now,
        interval_hours: Optional[float] = None,
        concurrency: Optional[int] = None,
        single_transaction: Optional[bool] = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._interval_hours = interval_hours or settings.RECURRING_SWEEP_INTERVAL_HOURS
        self._concurrency = concurrency or settings.RECURRING_SWEEP_CONCURRENCY
        self._single_transaction = (
            settings.RECURRING_SINGLE_TRANSACTION if single_transaction is None else single_transaction
        )
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Schedule the sweep. Must be called from a running event loop."""
        if self._scheduler is not None:
            logger.info("RecurringExpenseScheduler already started; ignoring duplicate start.")
            return

        scheduler = AsyncIOScheduler()
        scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

        # First run immediately, then every interval
        scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(hours=self._interval_hours),
            id=self.job_id,
            next_run_time=datetime.now(),
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=3600,
        )

        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            f"RecurringExpenseScheduler started: sweeping every {self._interval_hours}h "
            f"(concurrency={self._concurrency}, single_transaction={self._single_transaction})"
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.shutdown(wait=False)
            logger.info("RecurringExpenseScheduler stopped.")
        finally:
            self._scheduler = None

    def get_jobs(self) -> list:
        return self._scheduler.get_jobs() if self._scheduler is not None else []

    async def run_once(self) -> Optional[SweepResult]:
        """One sweep. Errors are logged and swallowed so the next tick still runs."""
        try:
            return await process_recurring_expenses(
                self._session_factory,
                clock=self._clock,
                concurrency=self._concurrency,
                single_transaction=self._single_transaction,
            )
        except Exception:
            logger.exception("process recurring expenses failed", extra={"op": "process_recurring_expenses"})
            return None

    @staticmethod
    def _on_job_event(event: JobExecutionEvent) -> None:
        if event.code == EVENT_JOB_MISSED:
            logger.warning(f"Job {event.job_id} missed its run time {event.scheduled_run_time}")
        elif event.exception is not None:
            logger.error(f"Job {event.job_id} raised {event.exception!r}")


# The single process-wide instance started by app.main
recurring_scheduler = RecurringExpenseScheduler()

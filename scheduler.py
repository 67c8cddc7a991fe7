import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from services import ReconcileService


logger = logging.getLogger(__name__)


class SchedulerManager:
    """Periodically re-reconciles every plan tree.

    A reconciliation that failed halfway leaves its tree partially updated;
    the safety net brings such trees back to a consistent state without
    waiting for the next edit.
    """

    def __init__(self) -> None:
        settings = get_settings()
        self.interval_hours = settings.safety_net_hours
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: source={source}")
        with session_scope() as session:
            summary = ReconcileService(session).reconcile_all()
            logger.info(
                f"scheduler_run: source={source} "
                f"expense_plans={summary.expense_plans} "
                f"income_plans={summary.income_plans} records={summary.records}"
            )

    def start(self) -> None:
        if self.interval_hours <= 0:
            logger.info("Scheduler disabled (safety_net_hours=0)")
            return

        trigger = IntervalTrigger(hours=self.interval_hours)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["safety_net"],
            id="reconcile_safety_net",
            replace_existing=True,
            misfire_grace_time=300,
            coalesce=True,
            max_instances=1,
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started with reconcile safety net every "
            f"{self.interval_hours}h"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

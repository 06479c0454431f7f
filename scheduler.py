import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from services import AlertService
from sync import SyncManager


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, sync_manager: Optional[SyncManager] = None) -> None:
        self.settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)
        self.sync_manager = sync_manager

    def _run_alerts(self, source: str = "manual") -> None:
        with session_scope() as session:
            count = AlertService(session).run_checks()
        logger.info(f"alerts_run: source={source} notifications_created={count}")

    def _run_sync(self) -> None:
        if self.sync_manager is None:
            return
        changed = self.sync_manager.poll()
        if changed:
            logger.info(f"sync_poll: changed={changed}")
        self.sync_manager.push()

    def start(self) -> None:
        self._run_alerts("startup")

        trigger = IntervalTrigger(minutes=self.settings.alert_interval_minutes)
        self.scheduler.add_job(
            self._run_alerts,
            trigger,
            args=["interval"],
            id="alerts_interval",
            replace_existing=True,
            misfire_grace_time=300,
        )

        if self.sync_manager is not None:
            trigger = IntervalTrigger(seconds=self.settings.sync_interval_secs)
            self.scheduler.add_job(
                self._run_sync,
                trigger,
                id="sync_interval",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

        self.scheduler.start()
        logger.info(
            f"Scheduler started: alerts every {self.settings.alert_interval_minutes}m "
            f"sync={'on' if self.sync_manager else 'off'}"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

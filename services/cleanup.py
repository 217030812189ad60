"""
Recurring sweep of expired refresh tokens (APScheduler background thread).
"""
from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

JOB_ID = "refresh_token_cleanup"


class TokenCleanupJob:
    def __init__(self, session_manager, storage=None, hour: int = 2, minute: int = 0, scheduler=None):
        self.session_manager = session_manager
        self.storage = storage
        self.trigger = CronTrigger(hour=hour, minute=minute)
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)

    def run_once(self) -> int:
        """Run one sweep. Failures are logged; the next scheduled run still happens."""
        logger.info("Starting cleanup of expired refresh tokens")
        try:
            deleted = self.session_manager.cleanup_expired_tokens()
        except Exception:
            logger.exception("Failed to cleanup expired refresh tokens")
            return 0
        finally:
            # the job runs on a scheduler thread; drop its thread-local session
            if self.storage is not None:
                self.storage.close()
        logger.info("Completed cleanup of expired refresh tokens (%d deleted)", deleted)
        return deleted

    def start(self):
        self.scheduler.add_job(
            self.run_once,
            trigger=self.trigger,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info("Refresh token cleanup scheduled (%s)", self.trigger)

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Refresh token cleanup stopped")

    @property
    def running(self) -> bool:
        return self.scheduler.running

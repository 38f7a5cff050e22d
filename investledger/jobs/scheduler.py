# investledger/jobs/scheduler.py
"""Background scheduler for the maturity payout job."""

import logging
import threading
from datetime import datetime
from typing import Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from investledger.services.maturity import MaturityBatchResult, MaturityProcessor

logger = logging.getLogger(__name__)

MATURITY_JOB_ID = "process_matured_investments"


class MaturityScheduler:
    """Runs the maturity batch on an interval, one run at a time.

    APScheduler's ``max_instances=1`` keeps scheduled firings from piling up;
    the run lock also covers manual runs triggered by an admin. Deploy a single
    scheduler instance per database.
    """

    def __init__(self, processor: MaturityProcessor, interval_minutes: int = 60):
        self.processor = processor
        self.interval_minutes = interval_minutes
        self._run_lock = threading.Lock()
        self.scheduler = BackgroundScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
            timezone="UTC",
        )

    def setup_jobs(self) -> None:
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=MATURITY_JOB_ID,
            name="Process Matured Investments",
            replace_existing=True,
        )
        logger.info(f"Scheduled job: process matured investments every {self.interval_minutes} minutes")

    def start(self) -> None:
        if self.scheduler.running:
            return
        self.setup_jobs()
        self.scheduler.start()
        logger.info("Maturity scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Maturity scheduler stopped")

    @property
    def is_running_batch(self) -> bool:
        return self._run_lock.locked()

    def run_once(self, now: Optional[datetime] = None) -> Optional[MaturityBatchResult]:
        """Run one batch unless another is in flight. Returns None when skipped."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Maturity batch already running, skipping this run")
            return None
        try:
            return self.processor.run_batch(now=now)
        except Exception:
            logger.exception("Maturity batch crashed")
            raise
        finally:
            self._run_lock.release()

    def trigger_now(self, now: Optional[datetime] = None) -> Optional[MaturityBatchResult]:
        logger.info("Manual maturity batch requested")
        return self.run_once(now=now)

"""
Refresh Scheduler.
Stands in for the platform cron: runs the bulk sync, the queue worker and
the queue cleanup on fixed intervals.
"""

import time
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict

from ..core.config import get_config

logger = logging.getLogger(__name__)


class RefreshScheduler:
    def __init__(self):
        self.config = get_config()
        self.stop_event = threading.Event()
        self.intervals = {
            'sync': timedelta(minutes=self.config.get_int('scheduler', 'sync_interval_minutes', default=5)),
            'process-queue': timedelta(seconds=self.config.get_int('scheduler', 'queue_interval_seconds', default=60)),
            'cleanup-queue': timedelta(minutes=self.config.get_int('scheduler', 'cleanup_interval_minutes', default=60)),
        }
        self.jobs: Dict[str, Callable[[], None]] = {
            'sync': self._run_sync,
            'process-queue': self._run_queue,
            'cleanup-queue': self._run_cleanup,
        }

    def run(self):
        """Start the scheduler loop."""
        logger.info(
            "Starting Refresh Scheduler (" +
            ", ".join(f"{name} every {interval}" for name, interval in self.intervals.items()) + ")"
        )

        # Everything runs once at startup
        next_runs = {name: datetime.now() for name in self.jobs}

        while not self.stop_event.is_set():
            now = datetime.now()
            for name, job in self.jobs.items():
                if self.stop_event.is_set():
                    break
                if now >= next_runs[name]:
                    self._run_job(name, job)
                    next_runs[name] = datetime.now() + self.intervals[name]
            time.sleep(1)

    def _run_job(self, name: str, job: Callable[[], None]):
        try:
            logger.info(f"Running scheduled {name} at {datetime.now()}")
            job()
        except Exception as e:
            logger.error(f"Error in scheduled {name}: {e}")

    def _run_sync(self):
        from ..orders.sync import create_bulk_sync_job_from_config

        result = create_bulk_sync_job_from_config().sync_recent_orders()
        logger.info(f"Scheduled sync complete: {result.to_dict()['message']}")

    def _run_queue(self):
        from ..orders.processor import create_queue_processor_from_config

        create_queue_processor_from_config().process_batch()

    def _run_cleanup(self):
        from ..orders.queue import create_refresh_queue_from_config

        max_age_ms = self.config.get_minutes_ms('queue', 'purge_age_minutes', default=60)
        create_refresh_queue_from_config().purge_older_than(max_age_ms)

    def stop(self):
        """Stop the scheduler."""
        logger.info("Stopping scheduler...")
        self.stop_event.set()

"""
Background refresh of stale orders.
Queues stale order ids and wakes the queue worker without making the
caller wait for either.
"""

import logging
import threading
from typing import Callable, List, Optional

from .processor import QueueProcessor
from .queue import RefreshQueue

logger = logging.getLogger(__name__)

# Schedules fn(*args) to run later; FastAPI's BackgroundTasks.add_task fits
Submit = Callable[..., None]


def _submit_in_thread(fn: Callable[..., None], *args) -> None:
    threading.Thread(target=fn, args=args, name="order-refresh", daemon=True).start()


class RefreshDispatcher:
    """Fire-and-forget handoff from the read path to the refresh queue."""

    def __init__(
        self,
        queue: RefreshQueue,
        processor_factory: Callable[[], QueueProcessor],
        submit: Submit = _submit_in_thread
    ):
        self.queue = queue
        self.processor_factory = processor_factory
        self.submit = submit

    def dispatch(self, order_ids: List[str], submit: Optional[Submit] = None) -> None:
        """Schedule a refresh for the given orders and return immediately."""
        if not order_ids:
            return
        logger.info(f"Queueing {len(order_ids)} orders for background refresh")
        (submit or self.submit)(self.run, list(order_ids))

    def run(self, order_ids: List[str]) -> None:
        """Enqueue the orders, then process one batch. Never raises."""
        try:
            self.queue.enqueue(order_ids)
        except Exception as e:
            logger.error(f"Failed to queue orders for refresh: {e}")
            return

        # The periodic trigger picks the queue up if this run fails
        try:
            self.processor_factory().process_batch()
        except Exception as e:
            logger.warning(f"Background queue processing failed: {e}")

"""
Refresh queue worker.
Processes a small batch of queued orders per invocation, within a fixed
time budget.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Dict, Any, Callable

from .client import MarketplaceClient
from .extractor import cache_update_fields
from .queue import RefreshQueue
from ..auth.token import TokenProvider
from ..core.database import DocumentStore, ORDERS_COLLECTION

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 5
# Stop picking new items after 8s of a 10s execution window
MAX_EXECUTION_TIME_MS = 8000
PURGE_AGE_MS = 60 * 60 * 1000
PURGE_BATCH_SIZE = 20


@dataclass
class ProcessResult:
    """Outcome of one worker invocation."""
    processed: int = 0
    failed: int = 0
    remaining: int = 0
    cleaned_up: int = 0
    execution_time_ms: int = 0
    processed_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed': self.processed,
            'failed': self.failed,
            'remaining': self.remaining,
            'cleaned_up': self.cleaned_up,
            'execution_time_ms': self.execution_time_ms,
        }


class QueueProcessor:
    """
    Drains the refresh queue one batch at a time.

    Items are handled sequentially in priority order. Refreshing an order
    only rewrites its cache fields, so running several processors at once
    is safe; the worst case is a retry counted twice.
    """

    def __init__(
        self,
        store: DocumentStore,
        queue: RefreshQueue,
        client: MarketplaceClient,
        token_provider: TokenProvider,
        batch_size: int = MAX_BATCH_SIZE,
        time_budget_ms: int = MAX_EXECUTION_TIME_MS,
        purge_age_ms: int = PURGE_AGE_MS,
        purge_batch_size: int = PURGE_BATCH_SIZE,
        clock: Callable[[], float] = time.monotonic
    ):
        self.store = store
        self.queue = queue
        self.client = client
        self.token_provider = token_provider
        self.batch_size = batch_size
        self.time_budget_ms = time_budget_ms
        self.purge_age_ms = purge_age_ms
        self.purge_batch_size = purge_batch_size
        self.clock = clock

    def _elapsed_ms(self, start: float) -> int:
        return int((self.clock() - start) * 1000)

    def process_batch(self) -> ProcessResult:
        """
        Run one worker invocation.

        1. Purge queue items older than purge_age_ms (any status)
        2. Take up to batch_size pending items
        3. Refresh each order from the marketplace until the time budget runs out

        Raises:
            NotAuthenticatedError: if no token can be obtained
        """
        start = self.clock()
        result = ProcessResult()
        logger.info("Queue processor started")

        result.cleaned_up = self.queue.purge_older_than(self.purge_age_ms, limit=self.purge_batch_size)

        items = self.queue.dequeue_batch(self.batch_size)
        if not items:
            logger.info("Queue is empty")
            result.execution_time_ms = self._elapsed_ms(start)
            return result

        logger.info(f"Processing {len(items)} queue items")
        token = self.token_provider.get_valid_access_token()

        for item in items:
            if self._elapsed_ms(start) > self.time_budget_ms:
                # Unprocessed items wait for the next run; stuck ones are purged by age
                logger.warning("Time budget exhausted, stopping batch")
                break

            order_id = item['orderId']
            try:
                self.queue.mark_processing(item)
                raw_order = self.client.get_order(token, order_id)
                self.store.update(ORDERS_COLLECTION, order_id, cache_update_fields(raw_order))
                self.queue.complete(item)
                result.processed_ids.append(order_id)
                logger.info(f"Order {order_id} refreshed")
            except Exception as e:
                logger.error(f"Failed to refresh order {order_id}: {e}")
                if self.queue.record_failure(item, str(e)):
                    result.failed_ids.append(order_id)

        result.processed = len(result.processed_ids)
        result.failed = len(result.failed_ids)
        result.remaining = self.queue.count_pending()
        result.execution_time_ms = self._elapsed_ms(start)

        logger.info(f"Queue processor completed: {result.to_dict()}")
        return result


def create_queue_processor_from_config() -> QueueProcessor:
    """Create QueueProcessor wired to the configured store, client and token provider."""
    from ..core.config import get_config
    from ..core.database import get_database
    from ..auth.token import get_token_provider
    from .client import create_marketplace_client_from_config
    from .queue import create_refresh_queue_from_config

    config = get_config()
    store = get_database()
    return QueueProcessor(
        store=store,
        queue=create_refresh_queue_from_config(store),
        client=create_marketplace_client_from_config(),
        token_provider=get_token_provider(),
        batch_size=config.get_int('queue', 'batch_size', default=MAX_BATCH_SIZE),
        time_budget_ms=config.get_int('queue', 'time_budget_ms', default=MAX_EXECUTION_TIME_MS),
        purge_age_ms=config.get_minutes_ms('queue', 'purge_age_minutes', default=60),
        purge_batch_size=config.get_int('queue', 'purge_batch_size', default=PURGE_BATCH_SIZE)
    )

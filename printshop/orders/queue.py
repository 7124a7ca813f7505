"""
Refresh queue.
Persisted tasks asking for a single order's cache to be fetched again.
"""

import logging
import uuid
from typing import List, Dict, Any, Optional, Iterable

from .freshness import now_ms
from ..core.database import DocumentStore, REFRESH_QUEUE_COLLECTION

logger = logging.getLogger(__name__)

STATUS_PENDING = 'pending'
STATUS_PROCESSING = 'processing'

DEFAULT_MAX_ENQUEUE = 10
DEFAULT_MAX_RETRIES = 3


class RefreshQueue:
    """
    Work queue of stale orders stored in the document store.

    Items are not deduplicated per order: refreshing an order twice is
    harmless, so at-least-once is enough. Old items of any status are
    reclaimed by purge_older_than().
    """

    collection = REFRESH_QUEUE_COLLECTION

    def __init__(
        self,
        store: DocumentStore,
        max_enqueue: int = DEFAULT_MAX_ENQUEUE,
        max_retries: int = DEFAULT_MAX_RETRIES
    ):
        self.store = store
        self.max_enqueue = max_enqueue
        self.max_retries = max_retries

    def enqueue(self, order_ids: Iterable[str], priority: int = 1, now: Optional[int] = None) -> List[str]:
        """
        Add pending refresh tasks, at most max_enqueue per call.
        Returns the ids of the created queue items.
        """
        order_ids = list(order_ids)[:self.max_enqueue]
        if not order_ids:
            return []
        if now is None:
            now = now_ms()

        item_ids = []
        with self.store.batch() as batch:
            for order_id in order_ids:
                item_id = uuid.uuid4().hex
                batch.set(self.collection, item_id, {
                    'id': item_id,
                    'orderId': str(order_id),
                    'status': STATUS_PENDING,
                    'priority': priority,
                    'createdAt': now,
                    'retryCount': 0,
                })
                item_ids.append(item_id)

        logger.info(f"Queued {len(item_ids)} orders for refresh")
        return item_ids

    def dequeue_batch(self, max_items: int = 5) -> List[Dict[str, Any]]:
        """Pending items, most urgent first, oldest first among equals."""
        return self.store.query(
            self.collection,
            where=[('status', '==', STATUS_PENDING)],
            order_by=[('priority', 'desc'), ('createdAt', 'asc')],
            limit=max_items
        )

    def mark_processing(self, item: Dict[str, Any], now: Optional[int] = None) -> None:
        self.store.update(self.collection, item['id'], {
            'status': STATUS_PROCESSING,
            'processedAt': now if now is not None else now_ms(),
        })
        item['status'] = STATUS_PROCESSING

    def complete(self, item: Dict[str, Any]) -> None:
        """Remove a successfully processed item."""
        self.store.delete(self.collection, item['id'])

    def retry(self, item: Dict[str, Any], error: str) -> int:
        """Put an item back to pending with one more retry counted. Returns the new count."""
        retry_count = int(item.get('retryCount') or 0) + 1
        self.store.update(self.collection, item['id'], {
            'status': STATUS_PENDING,
            'retryCount': retry_count,
            'lastError': error or 'Unknown error',
        })
        item.update(status=STATUS_PENDING, retryCount=retry_count, lastError=error or 'Unknown error')
        return retry_count

    def drop(self, item: Dict[str, Any]) -> None:
        """Remove an item that exhausted its retries."""
        self.store.delete(self.collection, item['id'])

    def record_failure(self, item: Dict[str, Any], error: str) -> bool:
        """
        Count a failed attempt.
        Drops the item once max_retries attempts have failed, otherwise
        retries it. Returns True if the item was dropped.
        """
        attempts = int(item.get('retryCount') or 0) + 1
        if attempts >= self.max_retries:
            logger.warning(f"Max retries reached for order {item.get('orderId')}, removing from queue")
            self.drop(item)
            return True

        logger.warning(f"Retry {attempts}/{self.max_retries} for order {item.get('orderId')}")
        self.retry(item, error)
        return False

    def purge_older_than(
        self,
        max_age_ms: int,
        limit: Optional[int] = None,
        now: Optional[int] = None
    ) -> int:
        """
        Delete items created more than max_age_ms ago, whatever their status.
        Returns the number of deleted items.
        """
        if now is None:
            now = now_ms()
        old_items = self.store.query(
            self.collection,
            where=[('createdAt', '<', now - max_age_ms)],
            limit=limit
        )
        if not old_items:
            return 0

        with self.store.batch() as batch:
            for item in old_items:
                logger.debug(
                    f"Deleting queue item {item['id']} "
                    f"(orderId: {item.get('orderId')}, status: {item.get('status')})"
                )
                batch.delete(self.collection, item['id'])

        logger.info(f"Cleaned up {len(old_items)} old queue items")
        return len(old_items)

    def count_pending(self) -> int:
        return self.store.count(self.collection, where=[('status', '==', STATUS_PENDING)])


def create_refresh_queue_from_config(store: Optional[DocumentStore] = None) -> RefreshQueue:
    """Create RefreshQueue with limits from config."""
    from ..core.config import get_config
    from ..core.database import get_database

    config = get_config()
    return RefreshQueue(
        store or get_database(),
        max_enqueue=config.get_int('queue', 'max_enqueue', default=DEFAULT_MAX_ENQUEUE),
        max_retries=config.get_int('queue', 'max_retries', default=DEFAULT_MAX_RETRIES)
    )

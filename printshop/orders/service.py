"""
Order Service.
Serves order listings from the local cache and records manual edits.
"""

import math
import logging
from typing import List, Dict, Any, Optional

from .extractor import INTERNAL_FIELDS, ORDER_STATUSES
from .freshness import CACHE_TTL_MS, cache_age_minutes, cache_warning, is_cache_valid, now_ms
from .refresh import RefreshDispatcher, Submit
from ..core.database import DELETE_FIELD, DocumentStore, ORDERS_COLLECTION, get_database

logger = logging.getLogger(__name__)

# Fields a user may edit; bookkeeping fields are set by update_order itself
EDITABLE_FIELDS = tuple(f for f in INTERNAL_FIELDS if f not in ('updatedAt', 'manuallyUpdated'))

_NUMERIC_FIELDS = ('priority', 'printStartedAt', 'printCompletedAt', 'filamentUsedGrams', 'printCost')


class OrderService:
    """
    Read path over the order cache.

    Listings never call the marketplace: stale entries are returned as they
    are and handed to the refresh dispatcher.
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        ttl_ms: int = CACHE_TTL_MS,
        dispatcher: Optional[RefreshDispatcher] = None
    ):
        self.db = store or get_database()
        self.ttl_ms = ttl_ms
        self.dispatcher = dispatcher

    def list_orders(
        self,
        offset: int = 0,
        limit: int = 50,
        sku: Optional[str] = None,
        submit: Optional[Submit] = None
    ) -> Dict[str, Any]:
        """
        Get a page of cached orders, most recently synced first.

        Args:
            offset: Pagination offset
            limit: Page size
            sku: Only orders with this SKU
            submit: How to schedule the background refresh (defaults to the
                dispatcher's own)

        Returns:
            Dict with orders, paging, cache_warning, refreshing_count,
            synced_at and last_updated
        """
        where = [('sku', '==', sku)] if sku else None
        logger.info(f"Listing orders (offset={offset}, limit={limit}, sku={sku})")

        documents = self.db.query(
            ORDERS_COLLECTION,
            where=where,
            order_by=[('syncedAt', 'desc')],
            limit=limit,
            offset=offset
        )
        total = self.db.count(ORDERS_COLLECTION, where=where)

        now = now_ms()
        orders: List[Dict[str, Any]] = []
        stale_ids: List[str] = []

        for document in documents:
            cached = document.get('ml_cached_data')
            if not cached:
                # Appears once a sync or queued refresh fills the cache
                logger.debug(f"Order {document['id']} has no cached data, skipping")
                continue

            cached_at = document.get('ml_cached_at')
            valid = is_cache_valid(cached_at, self.ttl_ms, now=now)
            if not valid:
                stale_ids.append(document['id'])

            age = cache_age_minutes(cached_at, now=now)
            order = {
                **document,
                'ml_data': cached,
                'is_using_cache': not valid,
                'cache_age_minutes': None if math.isinf(age) else age,
            }
            warning = cache_warning(cached_at, self.ttl_ms, now=now)
            if warning:
                order['cache_warning'] = warning
            orders.append(order)

        if stale_ids:
            self._request_refresh(stale_ids, submit)

        response = {
            'orders': orders,
            'paging': {
                'total': total,
                'limit': limit,
                'offset': offset,
                'has_next': offset + limit < total,
                'has_prev': offset > 0,
            },
            'refreshing_count': len(stale_ids),
            'last_updated': now,
        }
        if stale_ids:
            response['cache_warning'] = f"{len(stale_ids)} orders being refreshed in the background..."
        if orders and orders[0].get('syncedAt'):
            response['synced_at'] = orders[0]['syncedAt']
        return response

    def _request_refresh(self, order_ids: List[str], submit: Optional[Submit]) -> None:
        if self.dispatcher is None:
            logger.debug(f"No refresh dispatcher, {len(order_ids)} stale orders left as is")
            return
        try:
            self.dispatcher.dispatch(order_ids, submit=submit)
        except Exception as e:
            logger.error(f"Failed to schedule background refresh: {e}")

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        """Get a single cached order."""
        return self.db.get(ORDERS_COLLECTION, order_id)

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a manual edit to the fulfillment fields of an order.
        A None value clears the field. Marks the order as manually updated so
        syncs leave it alone for a while.

        Raises:
            KeyError: if the order doesn't exist
            ValueError: if a field is not editable or has an invalid value
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValueError(f"Fields not editable: {unknown}")

        status = changes.get('internalStatus')
        if status is not None and status not in ORDER_STATUSES:
            raise ValueError(f"Invalid status '{status}', expected one of {list(ORDER_STATUSES)}")

        for field in _NUMERIC_FIELDS:
            value = changes.get(field)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise ValueError(f"Field '{field}' must be a number")

        fields = {k: DELETE_FIELD if v is None else v for k, v in changes.items()}
        fields['manuallyUpdated'] = True
        fields['updatedAt'] = now_ms()

        self.db.update(ORDERS_COLLECTION, order_id, fields)
        logger.info(f"Order {order_id} updated manually: {sorted(changes)}")
        return self.db.get(ORDERS_COLLECTION, order_id)


def create_order_service_from_config(store: Optional[DocumentStore] = None) -> OrderService:
    """Create OrderService with a refresh dispatcher wired from config."""
    from ..core.config import get_config
    from .processor import create_queue_processor_from_config
    from .queue import create_refresh_queue_from_config

    config = get_config()
    store = store or get_database()
    dispatcher = RefreshDispatcher(
        queue=create_refresh_queue_from_config(store),
        processor_factory=create_queue_processor_from_config
    )
    return OrderService(
        store=store,
        ttl_ms=config.get_minutes_ms('cache', 'ttl_minutes', default=10),
        dispatcher=dispatcher
    )

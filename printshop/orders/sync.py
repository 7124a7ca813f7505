"""
Bulk order sync.
Pulls the most recent marketplace orders and upserts them into the cache.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional

from .client import MarketplaceClient
from .extractor import build_order_document
from .freshness import now_ms
from ..auth.token import TokenProvider
from ..core.database import DocumentStore, ORDERS_COLLECTION

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 30
PAGE_SIZE = 50
# Two pages fit in one execution window; later runs pick up the rest
MAX_PAGES = 2
MANUAL_EDIT_COOLDOWN_MS = 60 * 60 * 1000


@dataclass
class SyncResult:
    """Counts from one sync run."""
    total_found: int = 0
    synced: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'total_found': self.total_found,
            'total_synced': self.synced,
            'total_updated': self.updated,
            'total_skipped': self.skipped,
            'message': (
                f"{self.synced + self.updated} orders synced "
                f"({self.synced} new, {self.updated} updated, {self.skipped} skipped)"
            ),
        }


class BulkSyncJob:
    """Periodic full refresh of recent orders."""

    def __init__(
        self,
        store: DocumentStore,
        client: MarketplaceClient,
        token_provider: TokenProvider,
        lookback_days: int = LOOKBACK_DAYS,
        page_size: int = PAGE_SIZE,
        max_pages: int = MAX_PAGES,
        manual_edit_cooldown_ms: int = MANUAL_EDIT_COOLDOWN_MS
    ):
        self.db = store
        self.client = client
        self.token_provider = token_provider
        self.lookback_days = lookback_days
        self.page_size = page_size
        self.max_pages = max_pages
        self.manual_edit_cooldown_ms = manual_edit_cooldown_ms

    def _fetch_recent_orders(self, token: str, seller_id: Any, now: int) -> List[Dict[str, Any]]:
        since = datetime.fromtimestamp(now / 1000, tz=timezone.utc) - timedelta(days=self.lookback_days)
        date_from = since.isoformat(timespec='milliseconds').replace('+00:00', 'Z')

        orders: List[Dict[str, Any]] = []
        for page in range(self.max_pages):
            results = self.client.search_orders(
                token,
                seller_id,
                date_from,
                offset=page * self.page_size,
                limit=self.page_size
            )
            orders.extend(results)
            if len(results) < self.page_size:
                break
        return orders

    def _recently_edited(self, existing: Optional[Dict[str, Any]], now: int) -> bool:
        if not existing or not existing.get('manuallyUpdated') or not existing.get('updatedAt'):
            return False
        return existing['updatedAt'] > now - self.manual_edit_cooldown_ms

    def sync_recent_orders(self, now: Optional[int] = None) -> SyncResult:
        """
        Sync the recent orders window into the cache.

        Orders edited by hand within the cooldown are skipped. A failing
        order is logged and counted without stopping the run.

        Raises:
            NotAuthenticatedError: if no token can be obtained
            MarketplaceError: if the seller or the order listing can't be fetched
        """
        if now is None:
            now = now_ms()
        logger.info("Starting marketplace order sync...")

        token = self.token_provider.get_valid_access_token()
        seller = self.client.get_me(token)
        seller_id = seller.get('id')
        logger.info(f"Seller: {seller.get('nickname')} (ID: {seller_id})")

        orders = self._fetch_recent_orders(token, seller_id, now)
        result = SyncResult(total_found=len(orders))
        logger.info(f"Found {len(orders)} orders on the marketplace")

        for order in orders:
            order_id = str(order.get('id'))
            try:
                existing = self.db.get(ORDERS_COLLECTION, order_id)

                if self._recently_edited(existing, now):
                    logger.info(f"Skipping order {order_id} (edited manually less than an hour ago)")
                    result.skipped += 1
                    continue

                document = build_order_document(order_id, order, existing, now=now)
                self.db.set(ORDERS_COLLECTION, order_id, document, merge=True)

                if existing:
                    result.updated += 1
                else:
                    result.synced += 1
            except Exception as e:
                logger.error(f"Failed to sync order {order_id}: {e}")
                result.failed += 1

        logger.info(
            f"Sync complete: {result.synced} new, {result.updated} updated, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result


def create_bulk_sync_job_from_config() -> BulkSyncJob:
    """Create BulkSyncJob from config file."""
    from ..core.config import get_config
    from ..core.database import get_database
    from ..auth.token import get_token_provider
    from .client import create_marketplace_client_from_config

    config = get_config()
    return BulkSyncJob(
        store=get_database(),
        client=create_marketplace_client_from_config(),
        token_provider=get_token_provider(),
        lookback_days=config.get_int('sync', 'lookback_days', default=LOOKBACK_DAYS),
        page_size=config.get_int('sync', 'page_size', default=PAGE_SIZE),
        max_pages=config.get_int('sync', 'max_pages', default=MAX_PAGES),
        manual_edit_cooldown_ms=config.get_minutes_ms('sync', 'manual_edit_cooldown_minutes', default=60)
    )

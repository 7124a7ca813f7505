"""
Order cache extraction.
Reduces raw marketplace orders to the projection shown in listings and
merges it with the fields this system owns.
"""

import re
import logging
from typing import Dict, Any, Optional

from .freshness import now_ms

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Produto sem título"
DEFAULT_SKU = "SEM-SKU"
DEFAULT_BUYER = "Desconhecido"
UNKNOWN = "unknown"

# Fulfillment states managed in-house
ORDER_STATUSES = ('to-do', 'printing', 'ready', 'shipped', 'cancelled', 'returned')

# Fields written only by users; a sync copies them forward untouched
INTERNAL_FIELDS = (
    'internalStatus',
    'internalNotes',
    'priority',
    'assignedPrinter',
    'printStartedAt',
    'printCompletedAt',
    'filamentUsedGrams',
    'printCost',
    'updatedAt',
    'manuallyUpdated',
)

_COLOR_IN_TITLE = re.compile(r'\b(?:color|cor)[:\s]+([a-záàâãéèêíïóôõöúçñ\s]+)', re.IGNORECASE)


def _day(value: Any) -> str:
    """Keep the calendar date of an ISO timestamp."""
    if not value:
        return ''
    return str(value).split('T')[0]


def extract_color(item: Dict[str, Any]) -> str:
    """
    Best-effort color of an order item.
    Looks at variation attributes first, then at the title. Returns an
    empty string when nothing matches.
    """
    for variation in item.get('variation_attributes') or []:
        if not isinstance(variation, dict):
            continue
        name = str(variation.get('name') or '').lower()
        if ('color' in name or 'cor' in name) and variation.get('value_name'):
            return str(variation['value_name'])

    title = item.get('title')
    if isinstance(title, str):
        match = _COLOR_IN_TITLE.search(title)
        if match:
            return match.group(1).strip()

    return ''


def extract_cached_data(raw_order: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the cached projection of a raw marketplace order.

    Only the first order item is considered. Missing optional fields fall
    back to placeholders; date_shipped is left out entirely when the
    order has not shipped.
    """
    order_items = raw_order.get('order_items') or [{}]
    first_item = order_items[0] or {}
    item = first_item.get('item') or {}
    shipping = raw_order.get('shipping') or {}
    buyer = raw_order.get('buyer') or {}

    cached = {
        'title': item.get('title') or DEFAULT_TITLE,
        'seller_sku': str(item.get('seller_sku') or item.get('id') or DEFAULT_SKU),
        'quantity': first_item.get('quantity') or 1,
        'price': raw_order.get('total_amount') or 0,
        'color': extract_color(item),
        'status': raw_order.get('status') or UNKNOWN,
        'shipping_status': shipping.get('status') or UNKNOWN,
        'buyer_nickname': buyer.get('nickname') or DEFAULT_BUYER,
        'date_created': _day(raw_order.get('date_created')),
    }

    if shipping.get('date_first_printed'):
        cached['date_shipped'] = _day(shipping['date_first_printed'])

    return cached


def cache_update_fields(raw_order: Dict[str, Any], now: Optional[int] = None) -> Dict[str, Any]:
    """Fields rewritten when a single order is refreshed in place."""
    if now is None:
        now = now_ms()
    return {
        'ml_cached_data': extract_cached_data(raw_order),
        'ml_cached_at': now,
        'syncedAt': now,
    }


def build_order_document(
    order_id: str,
    raw_order: Dict[str, Any],
    existing: Optional[Dict[str, Any]] = None,
    now: Optional[int] = None
) -> Dict[str, Any]:
    """
    Build the order document to upsert after a sync.

    Internal fields present on the existing document are carried over
    verbatim; absent ones stay absent.
    """
    if now is None:
        now = now_ms()
    existing = existing or {}

    document = cache_update_fields(raw_order, now=now)
    document.update({
        'id': str(order_id),
        'sku': document['ml_cached_data']['seller_sku'],
        'createdAt': existing.get('createdAt') or now,
    })

    for field in INTERNAL_FIELDS:
        if existing.get(field) is not None:
            document[field] = existing[field]

    return document

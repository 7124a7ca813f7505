"""
Marketplace API Client.
Handles fetching orders and seller identity from the marketplace REST API.
"""

import requests
import logging
from typing import List, Dict, Optional, Any
from urllib.parse import urljoin

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.mercadolibre.com/"


class MarketplaceError(Exception):
    """Upstream call failed (transport error, non-2xx status or bad body)."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class MarketplaceClient:
    """Client for the marketplace REST API."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: int = 30):
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.session = requests.Session()

    def _get(
        self,
        endpoint: str,
        token: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Make an authenticated GET request and return the decoded JSON body."""
        url = urljoin(self.base_url, endpoint)
        request_headers = {'Authorization': f'Bearer {token}'}
        if headers:
            request_headers.update(headers)

        try:
            response = self.session.get(
                url,
                params=params,
                headers=request_headers,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Marketplace API error: {e}")
            raise MarketplaceError(f"Request to {endpoint} failed: {e}")

        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            logger.error(f"Marketplace API returned {response.status_code} for {endpoint}: {payload}")
            raise MarketplaceError(
                f"Marketplace API returned status {response.status_code} for {endpoint}",
                status_code=response.status_code,
                payload=payload
            )

        try:
            return response.json()
        except ValueError as e:
            raise MarketplaceError(f"Invalid JSON from {endpoint}: {e}", status_code=response.status_code)

    def get_me(self, token: str) -> Dict[str, Any]:
        """Fetch the authenticated seller (id, nickname)."""
        return self._get('users/me', token)

    def search_orders(
        self,
        token: str,
        seller_id: Any,
        date_from: str,
        offset: int = 0,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of recent orders, newest first.

        Args:
            token: Bearer token
            seller_id: Seller whose orders to list
            date_from: ISO 8601 lower bound on order creation
            offset: Pagination offset
            limit: Page size

        Returns:
            List of raw order dictionaries
        """
        logger.info(f"Fetching orders from marketplace (offset={offset}, limit={limit})...")

        params = {
            'seller': seller_id,
            'order.date_created.from': date_from,
            'sort': 'date_desc',
            'limit': limit,
            'offset': offset,
        }

        data = self._get('orders/search', token, params=params, headers={'x-format-new': 'true'})
        orders = (data or {}).get('results') or []

        logger.info(f"Retrieved {len(orders)} orders")
        return orders

    def get_order(self, token: str, order_id: str) -> Dict[str, Any]:
        """Fetch single order."""
        return self._get(f"orders/{order_id}", token)


def create_marketplace_client_from_config() -> MarketplaceClient:
    """Create MarketplaceClient from config file."""
    from ..core.config import get_config

    config = get_config()
    return MarketplaceClient(
        base_url=config.get('marketplace', 'base_url', default=DEFAULT_BASE_URL),
        timeout=config.get_int('marketplace', 'timeout', default=30)
    )

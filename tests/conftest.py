"""Shared pytest fixtures for Printshop Orders tests.

Provides a temporary document store, an in-memory fake of the marketplace
API, a fake token provider and a throwaway config file so that test
modules can focus on behaviour rather than boilerplate.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

# ---------------------------------------------------------------------------
# Config file (must exist BEFORE the app is imported)
# ---------------------------------------------------------------------------

_TMP_DIR = Path(tempfile.mkdtemp(prefix="printshop-tests-"))
_CONFIG_PATH = _TMP_DIR / "config.yaml"
_CONFIG_PATH.write_text(
    f"""
general:
  data_dir: {(_TMP_DIR / 'data').as_posix()}
  database: app.db
  log_file: {(_TMP_DIR / 'printshop.log').as_posix()}
  log_level: WARNING
  environment: production
marketplace:
  base_url: https://marketplace.test/
  client_id: test-client
  client_secret: test-secret
cron:
  header: x-cron-id
""",
    encoding="utf-8",
)
os.environ.setdefault("PRINTSHOP_CONFIG", str(_CONFIG_PATH))

from printshop.core.database import DocumentStore  # noqa: E402
from printshop.auth.token import NotAuthenticatedError  # noqa: E402
from printshop.orders.client import MarketplaceError  # noqa: E402
from printshop.orders.queue import RefreshQueue  # noqa: E402

MINUTE_MS = 60 * 1000


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

def make_raw_order(order_id: Any, **overrides) -> Dict[str, Any]:
    """Raw marketplace order as returned by the orders API."""
    order = {
        "id": int(order_id),
        "status": "paid",
        "date_created": "2024-05-10T14:32:00.000-03:00",
        "total_amount": 89.9,
        "order_items": [
            {
                "item": {
                    "id": "MLB123",
                    "title": "Vaso Geométrico Impresso 3D",
                    "seller_sku": "VASO-GEO-01",
                    "variation_attributes": [{"name": "Cor", "value_name": "Azul"}],
                },
                "quantity": 2,
            }
        ],
        "shipping": {"status": "ready_to_ship"},
        "buyer": {"id": 99, "nickname": "COMPRADOR_TESTE"},
    }
    order.update(overrides)
    return order


class FakeMarketplaceClient:
    """In-memory stand-in for MarketplaceClient."""

    def __init__(self, orders: Optional[List[Dict[str, Any]]] = None):
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.recent: List[Dict[str, Any]] = []
        self.failures: Dict[str, List[Exception]] = {}
        self.get_order_calls: List[str] = []
        self.search_calls: List[Dict[str, Any]] = []
        self.seller = {"id": 123456, "nickname": "PRINTSHOP3D"}
        for order in orders or []:
            self.add(order)

    def add(self, order: Dict[str, Any]) -> None:
        self.orders[str(order["id"])] = order
        self.recent.append(order)

    def fail(self, order_id: str, times: int = 1, status_code: int = 500) -> None:
        """Make the next `times` fetches of an order fail."""
        self.failures.setdefault(str(order_id), []).extend(
            MarketplaceError(f"Marketplace API returned status {status_code}", status_code=status_code)
            for _ in range(times)
        )

    def get_me(self, token: str) -> Dict[str, Any]:
        return self.seller

    def search_orders(self, token, seller_id, date_from, offset=0, limit=50):
        self.search_calls.append(
            {"seller_id": seller_id, "date_from": date_from, "offset": offset, "limit": limit}
        )
        return self.recent[offset:offset + limit]

    def get_order(self, token: str, order_id: str) -> Dict[str, Any]:
        self.get_order_calls.append(order_id)
        pending = self.failures.get(str(order_id))
        if pending:
            raise pending.pop(0)
        if str(order_id) not in self.orders:
            raise MarketplaceError(f"Marketplace API returned status 404", status_code=404)
        return self.orders[str(order_id)]


class FakeTokenProvider:
    """Token provider that never touches the network."""

    def __init__(self, token: str = "test-token", fail: bool = False):
        self.token = token
        self.fail = fail
        self.calls = 0

    def get_valid_access_token(self) -> str:
        self.calls += 1
        if self.fail:
            raise NotAuthenticatedError("No marketplace credentials available")
        return self.token

    def invalidate(self) -> None:
        pass


class FakeClock:
    """Monotonic clock advancing a fixed step on every read."""

    def __init__(self, step_seconds: float = 0.0):
        self.now = 0.0
        self.step = step_seconds

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store(tmp_path) -> DocumentStore:
    return DocumentStore(tmp_path / "orders.db")


@pytest.fixture
def queue(store) -> RefreshQueue:
    return RefreshQueue(store)


@pytest.fixture
def client() -> FakeMarketplaceClient:
    return FakeMarketplaceClient()


@pytest.fixture
def tokens() -> FakeTokenProvider:
    return FakeTokenProvider()

from unittest.mock import Mock

import pytest
import requests

from printshop.orders.client import MarketplaceClient, MarketplaceError


def _response(status_code=200, body=None, json_error=False):
    response = Mock(ok=200 <= status_code < 300, status_code=status_code, text="not json")
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def api():
    client = MarketplaceClient(base_url="https://marketplace.test", timeout=5)
    client.session = Mock()
    return client


def test_get_order_sends_bearer_token(api):
    api.session.get.return_value = _response(body={"id": 2000008001})

    assert api.get_order("APP_USR-1", "2000008001") == {"id": 2000008001}

    args, kwargs = api.session.get.call_args
    assert args[0] == "https://marketplace.test/orders/2000008001"
    assert kwargs["headers"]["Authorization"] == "Bearer APP_USR-1"
    assert kwargs["timeout"] == 5


def test_search_orders_builds_query(api):
    api.session.get.return_value = _response(body={"results": [{"id": 1}, {"id": 2}]})

    orders = api.search_orders("tok", 123456, "2024-04-06T12:53:20.000Z", offset=50, limit=50)

    assert [o["id"] for o in orders] == [1, 2]
    args, kwargs = api.session.get.call_args
    assert args[0] == "https://marketplace.test/orders/search"
    assert kwargs["params"] == {
        "seller": 123456,
        "order.date_created.from": "2024-04-06T12:53:20.000Z",
        "sort": "date_desc",
        "limit": 50,
        "offset": 50,
    }
    assert kwargs["headers"]["x-format-new"] == "true"


def test_search_orders_without_results(api):
    api.session.get.return_value = _response(body={"paging": {"total": 0}})
    assert api.search_orders("tok", 1, "2024-04-06T00:00:00.000Z") == []


def test_get_me(api):
    api.session.get.return_value = _response(body={"id": 123456, "nickname": "PRINTSHOP3D"})

    assert api.get_me("tok")["nickname"] == "PRINTSHOP3D"
    assert api.session.get.call_args[0][0] == "https://marketplace.test/users/me"


def test_error_status_raises_with_payload(api):
    api.session.get.return_value = _response(status_code=500, body={"message": "internal_error"})

    with pytest.raises(MarketplaceError) as exc_info:
        api.get_order("tok", "1")

    assert exc_info.value.status_code == 500
    assert exc_info.value.payload == {"message": "internal_error"}


def test_transport_error_raises(api):
    api.session.get.side_effect = requests.exceptions.ConnectionError("connection refused")

    with pytest.raises(MarketplaceError) as exc_info:
        api.get_order("tok", "1")

    assert exc_info.value.status_code is None


def test_invalid_json_raises(api):
    api.session.get.return_value = _response(json_error=True)

    with pytest.raises(MarketplaceError, match="Invalid JSON"):
        api.get_order("tok", "1")

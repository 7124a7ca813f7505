from unittest.mock import Mock

import pytest

from printshop.auth import token as token_module
from printshop.auth.token import NotAuthenticatedError, TokenProvider

NOW = 1_715_000_000_000
HOUR = 60 * 60 * 1000


def _response(ok=True, status_code=200, body=None):
    return Mock(ok=ok, status_code=status_code, json=Mock(return_value=body or {}))


@pytest.fixture
def clock(monkeypatch):
    state = {"now": NOW}
    monkeypatch.setattr(token_module, "_now_ms", lambda: state["now"])
    return state


@pytest.fixture
def session():
    session = Mock()
    session.post.return_value = _response(body={
        "access_token": "APP_USR-1", "refresh_token": "TG-2", "expires_in": 21600,
    })
    return session


def test_renews_with_configured_refresh_token(clock, session):
    provider = TokenProvider("id", "secret", refresh_token="TG-1", session=session)

    assert provider.get_valid_access_token() == "APP_USR-1"

    _, kwargs = session.post.call_args
    assert kwargs["data"] == {
        "grant_type": "refresh_token",
        "client_id": "id",
        "client_secret": "secret",
        "refresh_token": "TG-1",
    }


def test_cached_token_reused_until_close_to_expiry(clock, session):
    provider = TokenProvider("id", "secret", refresh_token="TG-1", session=session)
    provider.get_valid_access_token()

    clock["now"] += 5 * HOUR
    provider.get_valid_access_token()
    assert session.post.call_count == 1

    # Within five minutes of expiry
    clock["now"] += 56 * 60 * 1000
    provider.get_valid_access_token()
    assert session.post.call_count == 2
    assert session.post.call_args[1]["data"]["refresh_token"] == "TG-2"


def test_falls_back_to_configured_refresh_token(clock, session):
    provider = TokenProvider("id", "secret", refresh_token="TG-1", session=session)
    provider.get_valid_access_token()
    clock["now"] += 7 * HOUR

    session.post.side_effect = [
        _response(ok=False, status_code=400),
        _response(body={"access_token": "APP_USR-3", "expires_in": 21600}),
    ]

    assert provider.get_valid_access_token() == "APP_USR-3"
    assert session.post.call_args[1]["data"]["refresh_token"] == "TG-1"


def test_static_access_token_as_last_resort(clock, session):
    session.post.return_value = _response(ok=False, status_code=401)
    provider = TokenProvider("id", "secret", refresh_token="TG-1", access_token="APP_USR-STATIC", session=session)

    assert provider.get_valid_access_token() == "APP_USR-STATIC"

    # The static token is cached for six hours
    clock["now"] += HOUR
    assert provider.get_valid_access_token() == "APP_USR-STATIC"
    assert session.post.call_count == 1


def test_no_credentials_raises(clock, session):
    provider = TokenProvider(None, None, session=session)

    with pytest.raises(NotAuthenticatedError, match="ML_CLIENT_ID"):
        provider.get_valid_access_token()
    session.post.assert_not_called()


def test_refresh_token_without_client_credentials_raises(clock, session):
    provider = TokenProvider(None, None, refresh_token="TG-1", session=session)

    with pytest.raises(NotAuthenticatedError):
        provider.get_valid_access_token()
    session.post.assert_not_called()


def test_invalidate_forces_renewal(clock, session):
    provider = TokenProvider("id", "secret", refresh_token="TG-1", session=session)
    provider.get_valid_access_token()

    provider.invalidate()
    provider.get_valid_access_token()

    assert session.post.call_count == 2

"""
Marketplace OAuth token management.
Keeps one access token per process and renews it with the refresh token
before it expires.
"""

import os
import requests
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URL = "https://api.mercadolibre.com/oauth/token"

# Renew tokens this long before they actually expire
EXPIRY_MARGIN_MS = 5 * 60 * 1000
# Lifetime assumed for a static access token taken from config
STATIC_TOKEN_LIFETIME_MS = 6 * 60 * 60 * 1000

CREDENTIALS_HINT = (
    "Configure ML_CLIENT_ID, ML_CLIENT_SECRET and ML_REFRESH_TOKEN "
    "(or marketplace.client_id / client_secret / refresh_token in config.yaml)"
)


class NotAuthenticatedError(Exception):
    """No usable marketplace credentials are available."""


@dataclass
class TokenData:
    """Cached token state."""
    access_token: str
    refresh_token: str
    expires_at: int  # epoch ms


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenProvider:
    """
    Supplies a valid bearer token on demand.
    Thread-safe; the cached token is shared by every caller holding this
    provider.
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        refresh_token: Optional[str] = None,
        access_token: Optional[str] = None,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.access_token = access_token
        self.token_url = token_url
        self.timeout = timeout
        self.session = session or requests.Session()

        self._token: Optional[TokenData] = None
        self._lock = threading.Lock()

    def get_valid_access_token(self) -> str:
        """
        Get an access token, renewing it when close to expiry.

        Order of preference: cached token, renewal with the cached refresh
        token, renewal with the configured refresh token, the static access
        token from config.

        Raises:
            NotAuthenticatedError: if no credential material works
        """
        with self._lock:
            token = self._token
            if token and token.expires_at > _now_ms() + EXPIRY_MARGIN_MS:
                return token.access_token

            if token and token.refresh_token:
                try:
                    return self._refresh(token.refresh_token)
                except Exception as e:
                    logger.error(f"Failed to renew cached token: {e}")

            if self.refresh_token:
                try:
                    logger.info("Renewing token with configured refresh token...")
                    return self._refresh(self.refresh_token)
                except Exception as e:
                    logger.error(f"Failed to renew configured token: {e}")

            if not self.access_token:
                raise NotAuthenticatedError(
                    f"No marketplace credentials available. {CREDENTIALS_HINT}"
                )

            logger.warning("Using static access token; it expires in 6 hours and will not be renewed")
            self._token = TokenData(
                access_token=self.access_token,
                refresh_token='',
                expires_at=_now_ms() + STATIC_TOKEN_LIFETIME_MS
            )
            return self.access_token

    def _refresh(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new access token. Caller holds the lock."""
        if not self.client_id or not self.client_secret:
            raise NotAuthenticatedError(f"Client id and secret are required to renew tokens. {CREDENTIALS_HINT}")

        response = self.session.post(
            self.token_url,
            data={
                'grant_type': 'refresh_token',
                'client_id': self.client_id,
                'client_secret': self.client_secret,
                'refresh_token': refresh_token,
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=self.timeout
        )
        if not response.ok:
            raise NotAuthenticatedError(f"Token renewal failed with status {response.status_code}")

        data = response.json()
        self._token = TokenData(
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token') or refresh_token,
            expires_at=_now_ms() + int(data.get('expires_in', 0)) * 1000
        )
        logger.info("Access token renewed")
        return self._token.access_token

    def invalidate(self) -> None:
        """Clear the cached token (next call renews)."""
        with self._lock:
            self._token = None
        logger.info("Token invalidated")


def create_token_provider_from_config() -> TokenProvider:
    """Create TokenProvider from config file, with environment overrides."""
    from ..core.config import get_config

    config = get_config()

    def _setting(env_name: str, key: str) -> Optional[str]:
        return os.environ.get(env_name) or config.get('marketplace', key)

    return TokenProvider(
        client_id=_setting('ML_CLIENT_ID', 'client_id'),
        client_secret=_setting('ML_CLIENT_SECRET', 'client_secret'),
        refresh_token=_setting('ML_REFRESH_TOKEN', 'refresh_token'),
        access_token=_setting('ML_ACCESS_TOKEN', 'access_token'),
        token_url=config.get('marketplace', 'token_url', default=DEFAULT_TOKEN_URL),
        timeout=config.get_int('marketplace', 'timeout', default=30)
    )


_provider_instance: Optional[TokenProvider] = None
_provider_lock = threading.Lock()


def get_token_provider() -> TokenProvider:
    """Get the process-wide token provider."""
    global _provider_instance
    with _provider_lock:
        if _provider_instance is None:
            _provider_instance = create_token_provider_from_config()
        return _provider_instance

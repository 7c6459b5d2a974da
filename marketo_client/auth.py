"""
OAuth2 client-credentials token provider for the Marketo identity service.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import requests

from .base_client import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    """Bearer token and the epoch second after which it is treated as expired."""
    token: str
    expires_at: float

    def is_valid(self) -> bool:
        return time.time() < self.expires_at


class TokenProvider:
    """Acquires and caches a Marketo access token.

    The token is kept in memory only. Refreshes are serialized with a
    lock and the cache is re-checked once the lock is held, so callers
    racing on an expired token share a single grant request.
    """

    def __init__(self, token_url: str, client_id: str, client_secret: str,
                 timeout: float = 30, expiry_buffer: int = 30,
                 session: Optional[requests.Session] = None):
        """Initialize token provider.

        Args:
            token_url: Identity endpoint ({base_url}/identity/oauth/token)
            client_id: LaunchPoint client ID
            client_secret: LaunchPoint client secret
            timeout: Timeout for the grant request in seconds
            expiry_buffer: Seconds subtracted from expires_in
            session: Optional requests session to send the grant through
        """
        self.token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self.timeout = timeout
        self.expiry_buffer = expiry_buffer
        self.session = session or requests.Session()

        self._cached: Optional[AccessToken] = None
        self._lock = threading.Lock()

    def get_token(self) -> AccessToken:
        """Return the cached token, acquiring a new one if it is missing or expired.

        Raises:
            AuthError: Credentials rejected or identity endpoint unreachable
        """
        cached = self._cached
        if cached and cached.is_valid():
            return cached

        with self._lock:
            cached = self._cached
            if cached and cached.is_valid():
                return cached

            self._cached = self._request_new_token()
            return self._cached

    def invalidate(self, token: Optional[AccessToken] = None):
        """Drop the cached token so the next call re-acquires one.

        Args:
            token: The token that was rejected. If another caller has
                   already replaced it, the newer token is kept.
        """
        with self._lock:
            if token is None or (self._cached is not None and self._cached.token == token.token):
                self._cached = None

    def _request_new_token(self) -> AccessToken:
        data = {
            'grant_type': 'client_credentials',
            'client_id': self._client_id,
            'client_secret': self._client_secret,
        }

        logger.info("Requesting Marketo access token")

        try:
            response = self.session.post(self.token_url, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise AuthError(f"Failed to reach identity endpoint: {e}") from e

        if response.status_code != 200:
            raise AuthError(
                f"Token request failed: HTTP {response.status_code} - {self._describe_error(response)}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError("Identity endpoint returned invalid JSON") from e

        access_token = str(payload.get('access_token') or '').strip()
        if not access_token:
            raise AuthError(f"Token response did not contain an access token: {self._describe_error(response)}")

        expires_in = int(payload.get('expires_in', 0) or 0)
        expires_at = time.time() + max(0, expires_in - self.expiry_buffer)

        logger.info(f"Acquired Marketo access token, expires in {expires_in}s")
        return AccessToken(token=access_token, expires_at=expires_at)

    @staticmethod
    def _describe_error(response: requests.Response) -> str:
        """Extract the OAuth error description without echoing tokens."""
        try:
            data = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(data, dict):
            return data.get('error_description') or data.get('error') or 'unknown error'
        return 'unknown error'

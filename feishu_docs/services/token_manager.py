"""
Token Manager — exchanges the app credentials for a tenant access token and
caches it until shortly before it expires.

Refreshes are single-flight: when several threads find the token stale at
the same time, one of them performs the exchange and the others wait for
its outcome (token or error) instead of issuing their own requests.
"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass

import requests

from feishu_docs import config
from feishu_docs.errors import AuthError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/auth/v3/tenant_access_token/internal"
# Seconds shaved off the reported lifetime
EXPIRY_MARGIN = 300


@dataclass(frozen=True)
class Credentials:
    app_id: str
    app_secret: str

    @classmethod
    def from_config(cls) -> "Credentials":
        return cls(config.FEISHU_APP_ID, config.FEISHU_APP_SECRET)


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float


class TokenManager:
    """Owns the cached tenant access token."""

    def __init__(
        self,
        credentials: Credentials | None = None,
        session: requests.Session | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        clock=time.time,
    ):
        self.credentials = credentials or Credentials.from_config()
        self.session = session or requests.Session()
        self.base_url = (base_url or config.FEISHU_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self._clock = clock
        self._token: AccessToken | None = None
        self._inflight: Future | None = None
        self._lock = threading.Lock()

        if not self.credentials.app_id or not self.credentials.app_secret:
            logger.error(
                "Feishu app credentials are not configured — set FEISHU_APP_ID "
                "and FEISHU_APP_SECRET in your environment or .env file."
            )

    @property
    def token(self) -> AccessToken | None:
        return self._token

    def get_token(self) -> str:
        """Return a valid tenant access token, refreshing it if needed."""
        with self._lock:
            if self._token and self._clock() < self._token.expires_at:
                return self._token.value
            future = self._inflight
            leader = future is None
            if leader:
                future = self._inflight = Future()

        if not leader:
            return future.result().value

        try:
            token = self._exchange()
        except Exception as exc:
            with self._lock:
                self._inflight = None
            future.set_exception(exc)
            raise

        with self._lock:
            self._token = token
            self._inflight = None
        future.set_result(token)
        return token.value

    def invalidate(self) -> None:
        """Forget the cached token; the next get_token() call re-exchanges."""
        with self._lock:
            self._token = None

    def _exchange(self) -> AccessToken:
        if not self.credentials.app_id or not self.credentials.app_secret:
            raise AuthError("Feishu app credentials are not configured")

        issued_at = self._clock()
        try:
            resp = self.session.post(
                f"{self.base_url}{TOKEN_PATH}",
                json={
                    "app_id": self.credentials.app_id,
                    "app_secret": self.credentials.app_secret,
                },
                timeout=self.timeout,
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Tenant token request failed: %s", exc)
            raise AuthError(f"Tenant token request failed: {exc}") from exc

        if not isinstance(data, dict) or data.get("code") != 0:
            msg = data.get("msg", "unknown error") if isinstance(data, dict) else "malformed response"
            logger.error("Tenant token exchange rejected: %s", msg)
            raise AuthError(f"Failed to obtain tenant access token: {msg}")

        value = data.get("tenant_access_token")
        if not value:
            raise AuthError("Tenant token response carried no token")

        try:
            lifetime = int(data.get("expire"))
        except (TypeError, ValueError):
            lifetime = 0
        if lifetime <= 0:
            logger.error("Tenant token response carried no usable lifetime: %r", data.get("expire"))
            raise AuthError("Tenant token response carried no usable lifetime")

        expires_at = issued_at + lifetime - EXPIRY_MARGIN
        logger.info("Tenant access token refreshed (valid %ss).", lifetime)
        return AccessToken(value=value, expires_at=expires_at)

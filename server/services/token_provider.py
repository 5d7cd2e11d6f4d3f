"""Bearer token acquisition for the marketplace API.

A token is obtained in two steps: sign a short-lived JWT assertion with the
company's private key, then exchange it at the authorization endpoint using
the JWT-bearer grant. The resulting access token lives in a single cache slot
with a TTL shorter than its real lifetime.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from core.cache import TTLCache
from core.config import Settings
from core.logging import get_logger
from services.marketplace.exceptions import AuthError, DownstreamError
from services.resilient_fetch import fetch_json

logger = get_logger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
TOKEN_CACHE_KEY = "oauth:access_token"

# Cached tokens expire this long before the server-reported lifetime
EXPIRY_MARGIN_SECONDS = 60


class TokenProvider:
    """Signs assertions and caches the exchanged access token."""

    def __init__(self, settings: Settings, cache: TTLCache, client: httpx.AsyncClient):
        self.settings = settings
        self.cache = cache
        self.client = client
        self._lock = asyncio.Lock()

    def sign_assertion(self, now: Optional[int] = None) -> str:
        """Build and sign the JWT assertion presented to the token endpoint."""
        issued_at = int(now if now is not None else time.time())
        claims = {
            "scopes": list(self.settings.token_scopes),
            "iss": self.settings.company_uri,
            "sub": self.settings.company_uri,
            "aud": self.settings.token_audience,
            "iat": issued_at,
            "exp": issued_at + self.settings.jwt_lifetime_seconds,
        }
        try:
            return jwt.encode(
                claims,
                self.settings.jwt_private_key,
                algorithm=self.settings.jwt_algorithm,
                headers={"kid": self.settings.jwt_key_id, "typ": "JWT"},
            )
        except (JOSEError, ValueError, TypeError) as e:
            logger.error("JWT signing failed", key_id=self.settings.jwt_key_id, error=str(e))
            raise AuthError("signing", "Failed to generate JWT") from e

    async def exchange(self, assertion: str) -> Dict[str, Any]:
        """Trade a signed assertion for an access token response."""
        try:
            data = await fetch_json(
                self.client,
                self.settings.token_url,
                method="POST",
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_delay,
                timeout=self.settings.request_timeout,
            )
        except DownstreamError as e:
            logger.error("Token exchange failed", status=e.status, error=str(e))
            if e.status in (401, 403):
                raise AuthError("exchange", "Authentication failed. Please try again.",
                                status_code=e.status) from e
            raise AuthError("exchange", "Token retrieval failed") from e

        if not isinstance(data, dict) or not data.get("access_token"):
            logger.error("Token response did not contain access_token")
            raise AuthError("exchange", "Failed to retrieve access token")
        return data

    def _cache_ttl(self, token_response: Dict[str, Any]) -> float:
        ttl = float(self.settings.token_cache_ttl)
        expires_in = token_response.get("expires_in")
        try:
            if expires_in is not None:
                ttl = min(ttl, float(expires_in) - EXPIRY_MARGIN_SECONDS)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed expires_in", expires_in=expires_in)
        return max(ttl, 1.0)

    async def get_token(self) -> str:
        """Return a valid access token, exchanging a new assertion if needed."""
        token = self.cache.get(TOKEN_CACHE_KEY)
        if token:
            return token

        async with self._lock:
            # Another coroutine may have refreshed while we waited
            token = self.cache.get(TOKEN_CACHE_KEY)
            if token:
                return token

            logger.info("No valid cached token, requesting a new one")
            assertion = self.sign_assertion()
            response = await self.exchange(assertion)

            token = response["access_token"]
            ttl = self._cache_ttl(response)
            self.cache.set(TOKEN_CACHE_KEY, token, ttl)
            logger.info("Access token retrieved and cached", ttl_seconds=ttl)
            return token

    def invalidate(self) -> None:
        """Forget the cached token so the next call re-authenticates."""
        self.cache.delete(TOKEN_CACHE_KEY)

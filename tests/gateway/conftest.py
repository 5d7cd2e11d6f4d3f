"""Shared fixtures: settings with a throwaway RSA key, a fake clock and a
scriptable fake marketplace served through httpx.MockTransport."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from core.cache import TTLCache
from core.config import Settings
from services.http_client import create_http_client
from services.marketplace.service import MarketplaceService
from services.token_provider import TokenProvider

API_URL = "https://api.marketplace.test"
TOKEN_URL = f"{API_URL}/iam/oauth/token"
RATES_URL = "https://rates.test/v4/latest/USD"
COMPANY = "c::1234"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMarketplace:
    """Routes MockTransport requests to canned marketplace responses."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.search_hits: List[Dict[str, Any]] = []
        self.search_status = 200
        self.entities: Dict[str, Dict[str, Any]] = {}
        self.entity_status: Dict[str, int] = {}
        self.vessel_list: Optional[List[Dict[str, Any]]] = None
        self.token_status = 200
        self.token_expires_in = 3600
        self.rates = {"USD": 1.0, "EUR": 0.5, "GBP": 0.25}
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self._tokens_issued = 0

    # -- inspection helpers ------------------------------------------------

    def calls(self, method: str, prefix: str) -> List[httpx.Request]:
        return [r for r in self.requests
                if r.method == method and r.url.path.startswith(prefix)]

    @property
    def token_exchanges(self) -> int:
        return len(self.calls("POST", "/iam/oauth/token"))

    @property
    def marketplace_calls(self) -> int:
        return len([r for r in self.requests if r.url.host == httpx.URL(API_URL).host
                    and not r.url.path.startswith("/iam/")])

    def last_search_params(self) -> Dict[str, str]:
        return dict(self.calls("GET", "/website/search")[-1].url.params)

    # -- handler -------------------------------------------------------------

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == httpx.URL(RATES_URL).host:
            return httpx.Response(200, json={"base": "USD", "rates": self.rates})

        if path == "/iam/oauth/token":
            return self._token(request)

        if path.startswith("/website/entity/"):
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                if self.delay:
                    await asyncio.sleep(self.delay)
                return self._entity(path[len("/website/entity/"):])
            finally:
                self.in_flight -= 1

        if path == "/website/search":
            return self._search(request)

        if path.startswith("/website/register/"):
            return httpx.Response(200, json={})

        if path == "/entity/vessel/list":
            if self.vessel_list is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json={"hits": self.vessel_list})

        return httpx.Response(404, json={"message": "not found"})

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        if form.get("grant_type") != ["urn:ietf:params:oauth:grant-type:jwt-bearer"]:
            return httpx.Response(400, json={"error": "unsupported_grant_type"})
        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"error": "invalid_grant"})
        self._tokens_issued += 1
        return httpx.Response(200, json={
            "access_token": f"token-{self._tokens_issued}",
            "token_type": "Bearer",
            "expires_in": self.token_expires_in,
        })

    def _search(self, request: httpx.Request) -> httpx.Response:
        if self.search_status != 200:
            return httpx.Response(self.search_status, json={"message": "search failed"})
        offset = int(request.url.params.get("offset", 0))
        limit = int(request.url.params.get("limit", len(self.search_hits) or 1))
        return httpx.Response(200, json={
            "estHits": len(self.search_hits),
            "hits": self.search_hits[offset:offset + limit],
        })

    def _entity(self, uri: str) -> httpx.Response:
        status = self.entity_status.get(uri, 200)
        if status != 200:
            return httpx.Response(status, json={"message": "entity unavailable"})
        if uri not in self.entities:
            return httpx.Response(404, json={"message": "not found"})
        return httpx.Response(200, json=self.entities[uri])


def priced(cents_day: Optional[int] = None, cents_week: Optional[int] = None,
           currency: str = "USD") -> Dict[str, Any]:
    """Upstream pricing block in minor units."""
    pricing: Dict[str, Any] = {}
    if cents_day is not None:
        pricing["dayPricingFrom"] = {"displayPrice": cents_day, "displayCurrency": currency}
    if cents_week is not None:
        pricing["weekPricingFrom"] = {"displayPrice": cents_week, "displayCurrency": currency}
    return pricing


@pytest.fixture(scope="session")
def rsa_keys() -> Tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


def make_settings(private_key: str, **overrides) -> Settings:
    values = dict(
        company_uri=COMPANY,
        jwt_key_id="key-1",
        jwt_private_key=private_key,
        marketplace_api_url=API_URL,
        token_url=TOKEN_URL,
        rates_url=RATES_URL,
        site_url="https://charters.example.com",
        cors_origins=["https://charters.example.com"],
        retry_delay=0.0,
        request_timeout=2.0,
        log_format="console",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings_factory(rsa_keys):
    """Build Settings with test defaults plus keyword overrides."""
    return lambda **overrides: make_settings(rsa_keys[0], **overrides)


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture(name="priced")
def priced_fixture():
    return priced


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake() -> FakeMarketplace:
    return FakeMarketplace()


@pytest.fixture
async def http_client(settings, fake):
    client = create_http_client(settings, transport=httpx.MockTransport(fake))
    yield client
    await client.aclose()


@pytest.fixture
def token_provider(settings, clock, http_client) -> TokenProvider:
    return TokenProvider(settings, TTLCache("token", clock=clock), http_client)


@pytest.fixture
def response_cache(clock) -> TTLCache:
    return TTLCache("responses", clock=clock)


@pytest.fixture
def marketplace(settings, response_cache, token_provider, http_client) -> MarketplaceService:
    return MarketplaceService(settings, response_cache, token_provider, http_client)

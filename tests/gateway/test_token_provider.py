"""Tests for JWT assertion signing and access-token caching."""

import asyncio
from urllib.parse import parse_qs

import pytest
from jose import jwt

from core.cache import TTLCache
from services.marketplace.exceptions import AuthError
from services.token_provider import JWT_BEARER_GRANT, TOKEN_CACHE_KEY, TokenProvider


class TestSignAssertion:

    def test_claims_and_header(self, token_provider, settings, rsa_keys):
        assertion = token_provider.sign_assertion(now=1_700_000_000)

        header = jwt.get_unverified_header(assertion)
        assert header["kid"] == "key-1"
        assert header["alg"] == "RS256"

        claims = jwt.decode(
            assertion,
            rsa_keys[1],
            algorithms=["RS256"],
            audience=settings.token_audience,
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims["iss"] == settings.company_uri
        assert claims["sub"] == settings.company_uri
        assert claims["scopes"] == ["website:read:*"]
        assert claims["iat"] == 1_700_000_000
        assert claims["exp"] - claims["iat"] == 3600

    def test_fresh_assertion_verifies_against_current_time(self, token_provider, settings, rsa_keys):
        claims = jwt.decode(token_provider.sign_assertion(), rsa_keys[1],
                            algorithms=["RS256"], audience=settings.token_audience)
        assert claims["aud"] == "ankor.io"

    def test_invalid_key_raises_signing_error(self, settings_factory, clock, http_client):
        provider = TokenProvider(settings_factory(jwt_private_key="not a pem key"),
                                 TTLCache("token", clock=clock), http_client)
        with pytest.raises(AuthError) as exc_info:
            provider.sign_assertion()
        assert exc_info.value.stage == "signing"
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Failed to generate JWT"


class TestGetToken:

    async def test_exchanges_with_jwt_bearer_grant(self, token_provider, fake):
        token = await token_provider.get_token()

        assert token == "token-1"
        assert fake.token_exchanges == 1
        form = parse_qs(fake.calls("POST", "/iam/oauth/token")[0].content.decode())
        assert form["grant_type"] == [JWT_BEARER_GRANT]
        assert jwt.get_unverified_header(form["assertion"][0])["kid"] == "key-1"

    async def test_cached_token_is_reused(self, token_provider, fake, clock):
        first = await token_provider.get_token()
        clock.advance(2999)
        second = await token_provider.get_token()

        assert first == second == "token-1"
        assert fake.token_exchanges == 1

    async def test_new_exchange_after_cache_ttl(self, token_provider, fake, clock):
        await token_provider.get_token()
        clock.advance(3000)

        assert await token_provider.get_token() == "token-2"
        assert fake.token_exchanges == 2

    async def test_short_lived_token_caps_cache_ttl(self, token_provider, fake, clock):
        fake.token_expires_in = 600
        await token_provider.get_token()

        clock.advance(539)
        assert await token_provider.get_token() == "token-1"
        clock.advance(1)
        assert await token_provider.get_token() == "token-2"

    async def test_concurrent_misses_share_one_exchange(self, token_provider, fake):
        tokens = await asyncio.gather(*(token_provider.get_token() for _ in range(5)))

        assert set(tokens) == {"token-1"}
        assert fake.token_exchanges == 1

    async def test_invalidate_forces_new_exchange(self, token_provider, fake):
        await token_provider.get_token()
        token_provider.invalidate()

        assert TOKEN_CACHE_KEY not in token_provider.cache
        assert await token_provider.get_token() == "token-2"

    @pytest.mark.parametrize("status", [401, 403])
    async def test_rejected_credentials_pass_status_through(self, token_provider, fake, status):
        fake.token_status = status
        with pytest.raises(AuthError) as exc_info:
            await token_provider.get_token()

        assert exc_info.value.status_code == status
        assert exc_info.value.stage == "exchange"
        assert exc_info.value.message == "Authentication failed. Please try again."

    async def test_server_error_retried_then_reported(self, token_provider, fake, settings):
        fake.token_status = 500
        with pytest.raises(AuthError) as exc_info:
            await token_provider.get_token()

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Token retrieval failed"
        assert fake.token_exchanges == settings.max_retries
        assert len(token_provider.cache) == 0

    async def test_missing_access_token(self, token_provider, monkeypatch):
        async def empty_exchange(*args, **kwargs):
            return {"token_type": "Bearer"}

        monkeypatch.setattr("services.token_provider.fetch_json", empty_exchange)
        with pytest.raises(AuthError) as exc_info:
            await token_provider.get_token()
        assert exc_info.value.message == "Failed to retrieve access token"

"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError


def test_private_key_newlines_expanded(settings_factory):
    settings = settings_factory(jwt_private_key="-----BEGIN KEY-----\\nabc\\n-----END KEY-----\\n")
    assert settings.jwt_private_key == "-----BEGIN KEY-----\nabc\n-----END KEY-----"


def test_trailing_slashes_stripped(settings_factory):
    settings = settings_factory(marketplace_api_url="https://api.test/", site_url="https://site.test//")
    assert settings.marketplace_api_url == "https://api.test"
    assert settings.site_url == "https://site.test"


def test_fleet_company_defaults_to_company(settings_factory):
    assert settings_factory().fleet_company == "c::1234"
    assert settings_factory(fleet_company_uri="c::9").fleet_company == "c::9"


def test_development_mode_follows_debug(settings_factory):
    assert settings_factory(debug=True).is_development is True
    assert settings_factory().is_development is False


def test_environment_fills_unset_values(settings_factory, monkeypatch):
    monkeypatch.setenv("RESPONSE_CACHE_TTL", "60")
    monkeypatch.setenv("CORS_ORIGINS", '["https://a.test"]')
    settings = settings_factory()

    assert settings.response_cache_ttl == 60
    assert settings.cors_origins == ["https://charters.example.com"]


@pytest.mark.parametrize("overrides", [
    {"log_format": "xml"},
    {"jwt_algorithm": "HS256"},
    {"max_retries": 0},
    {"unknown_setting": 1},
])
def test_invalid_values_rejected(settings_factory, overrides):
    with pytest.raises(ValidationError):
        settings_factory(**overrides)

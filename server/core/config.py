"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3010, ge=1024, le=65535)
    debug: bool = Field(default=False)
    workers: int = Field(default=1, ge=1, le=8)

    # CORS - origins echoed back, everything else gets "*"
    cors_origins: List[str] = Field(default_factory=list)

    # Marketplace API
    marketplace_api_url: str = Field(default="https://api.ankor.io")
    token_url: str = Field(default="https://api.ankor.io/iam/oauth/token")
    token_audience: str = Field(default="ankor.io")
    token_scopes: List[str] = Field(default_factory=lambda: ["website:read:*"])
    company_uri: str = Field(min_length=1)
    fleet_company_uri: Optional[str] = Field(default=None)
    site_url: str = Field(default="http://localhost:3000")
    register_unpriced_vessels: bool = Field(default=True)

    # Assertion signing
    jwt_key_id: str = Field(min_length=1)
    jwt_private_key: str = Field(min_length=1)
    jwt_algorithm: Literal["RS256", "RS384", "RS512"] = Field(default="RS256")
    jwt_lifetime_seconds: int = Field(default=3600, ge=60)

    # Cache Configuration
    response_cache_ttl: int = Field(default=300, ge=1)
    token_cache_ttl: int = Field(default=3000, ge=60)  # 50 min for a 60 min token

    # Downstream calls
    request_timeout: float = Field(default=10.0, gt=0, le=120)
    max_retries: int = Field(default=3, ge=1, le=10)
    retry_delay: float = Field(default=1.0, ge=0.0, le=30.0)

    # Enrichment
    enrich_limit: int = Field(default=20, ge=0, le=200)
    enrich_batch_size: int = Field(default=20, ge=1, le=100)
    fleet_page_size: int = Field(default=100, ge=1, le=500)
    fleet_max_pages: int = Field(default=20, ge=1, le=100)

    # Pricing defaults
    default_day_price: float = Field(default=2500, ge=0)
    default_week_price: float = Field(default=14500, ge=0)
    default_currency: str = Field(default="USD", min_length=3, max_length=3)

    # Exchange rates
    rates_url: str = Field(default="https://api.exchangerate-api.com/v4/latest/USD")
    rates_cache_ttl: int = Field(default=3600, ge=60)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("jwt_private_key")
    @classmethod
    def expand_key_newlines(cls, v):
        """PEM keys pasted into .env files usually carry literal \\n sequences."""
        return v.replace("\\n", "\n").strip()

    @field_validator("marketplace_api_url", "site_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @property
    def fleet_company(self) -> str:
        """Company whose vessels the fleet listing is restricted to."""
        return self.fleet_company_uri or self.company_uri

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "forbid",
        "env_parse_none_str": "none",
        "env_nested_delimiter": "__",
    }

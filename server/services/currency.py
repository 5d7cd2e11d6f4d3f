"""Currency conversion backed by a public exchange-rate feed."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from core.cache import TTLCache
from core.config import Settings
from core.logging import get_logger
from services.marketplace.exceptions import DownstreamError, QueryValidationError
from services.resilient_fetch import Backoff, fetch_json

logger = get_logger(__name__)

RATES_CACHE_KEY = "rates:latest"


class ExchangeRateService:
    """Converts amounts between currencies using rates cached for an hour."""

    def __init__(self, settings: Settings, cache: TTLCache, client: httpx.AsyncClient):
        self.settings = settings
        self.cache = cache
        self.client = client

    async def rates(self) -> Dict[str, float]:
        """Rates relative to the feed's base currency."""
        cached = self.cache.get(RATES_CACHE_KEY)
        if cached is not None:
            return cached

        data = await fetch_json(
            self.client,
            self.settings.rates_url,
            max_retries=self.settings.max_retries,
            base_delay=self.settings.retry_delay,
            timeout=self.settings.request_timeout,
            backoff=Backoff.LINEAR,
        )
        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict) or not rates:
            raise DownstreamError(self.settings.rates_url, "Exchange rate feed returned no rates")

        self.cache.set(RATES_CACHE_KEY, rates, self.settings.rates_cache_ttl)
        logger.info("Exchange rates refreshed", currencies=len(rates))
        return rates

    async def convert(self, base: str = "USD", to: Optional[str] = None,
                      amount: Any = 1) -> Dict[str, Any]:
        """
        Convert ``amount`` from ``base`` to ``to``.

        Without ``to`` every known rate is returned relative to ``base``.
        """
        base = (base or "USD").upper()
        rates = await self.rates()

        if base not in rates:
            raise QueryValidationError(f"Currency '{base}' not supported")
        base_rate = float(rates[base])

        result: Dict[str, Any] = {
            "base": base,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "rates": {},
        }

        if to:
            to = to.upper()
            if to not in rates:
                raise QueryValidationError(f"Currency '{to}' not supported")
            try:
                value = float(amount)
            except (TypeError, ValueError):
                raise QueryValidationError("Amount must be a number")

            rate = float(rates[to]) / base_rate
            result.update({
                "to": to,
                "amount": value,
                "convertedAmount": value * rate,
                "rate": rate,
            })
        else:
            result["rates"] = {code: float(r) / base_rate for code, r in rates.items()}

        return result

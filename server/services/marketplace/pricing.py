"""Price normalization for marketplace listings.

Upstream entities report prices as ``{"displayPrice": <minor units>,
"displayCurrency": "USD"}`` under ``dayPricingFrom`` / ``weekPricingFrom``.
Search hits may already carry ``{"day": {"from": ...}, "week": {"from": ...}}``.
"""

import math
from typing import Any, Dict, Optional, Union

from services.marketplace.models import PricePoint, Pricing

DAYS_PER_WEEK = 7


def as_number(value: Any) -> Optional[Union[int, float]]:
    """Finite number from an int, float or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def major_units(point: Any) -> Optional[float]:
    if not isinstance(point, dict):
        return None
    price = point.get("displayPrice")
    if not isinstance(price, (int, float)) or isinstance(price, bool) or price <= 0:
        return None
    return price / 100


def _currency(point: Any) -> Optional[str]:
    if isinstance(point, dict) and point.get("displayCurrency"):
        return str(point["displayCurrency"])
    return None


def default_pricing(day: float, week: float, currency: str = "USD") -> Pricing:
    return Pricing(currency=currency, day=PricePoint(from_=day), week=PricePoint(from_=week))


def normalize_pricing(raw: Optional[Dict[str, Any]], defaults: Pricing) -> Optional[Pricing]:
    """
    Convert upstream pricing into a Pricing, or None when it has no prices.

    Missing halves are filled from ``defaults``. A week price without a day
    price yields an estimated day price of one seventh of the week.
    """
    if not isinstance(raw, dict):
        return None

    # Already normalized (search hits); values that are not numbers count as missing
    day_block, week_block = raw.get("day"), raw.get("week")
    if isinstance(day_block, dict) or isinstance(week_block, dict):
        day = as_number(day_block.get("from")) if isinstance(day_block, dict) else None
        week = as_number(week_block.get("from")) if isinstance(week_block, dict) else None
        if day is None and week is None:
            return None
        currency = raw.get("currency")
        return Pricing(
            currency=currency if isinstance(currency, str) and currency else defaults.currency,
            day=PricePoint(from_=day if day is not None else defaults.day.from_),
            week=PricePoint(from_=week if week is not None else defaults.week.from_),
            estimated=bool(raw.get("estimated", False)),
        )

    day = major_units(raw.get("dayPricingFrom"))
    week = major_units(raw.get("weekPricingFrom"))
    if day is None and week is None:
        return None

    estimated = day is None and week is not None
    if estimated:
        day = round(week / DAYS_PER_WEEK)

    currency = (_currency(raw.get("dayPricingFrom"))
                or _currency(raw.get("weekPricingFrom"))
                or defaults.currency)

    return Pricing(
        currency=currency,
        day=PricePoint(from_=day),
        week=PricePoint(from_=week if week is not None else defaults.week.from_),
        estimated=estimated,
    )

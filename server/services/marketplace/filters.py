"""Lenient validation of inbound search parameters.

Unknown keys are ignored. Values outside an allowed set, or numbers that do
not parse, are dropped with a warning and the search proceeds without them.
"""

from typing import Any, Dict, Mapping, Optional

from core.logging import get_logger

logger = get_logger(__name__)

# Inbound name -> marketplace name
PARAMETER_MAPPING: Dict[str, str] = {
    "name": "name",
    "type": "yachtType",
    "yachtType": "yachtType",
    "charterType": "charterType",
    "region": "region",
    "minLength": "minLength",
    "maxLength": "maxLength",
    "sleeps": "sleeps",
    "currency": "currency",
    "priceMin": "priceMin",
    "priceMax": "priceMax",
}

ALLOWED_VALUES: Dict[str, frozenset] = {
    "charterType": frozenset(["Bareboat", "Crewed"]),
    "yachtType": frozenset([
        "Gulet", "Sailing", "Catamaran", "Motor", "Power Catamaran", "Classic",
        "Expedition", "Sport fishing",
    ]),
    "currency": frozenset([
        "USD", "EUR", "GBP", "AUD", "AED", "SGD", "HKD", "JPY", "CAD", "CHF", "BTC", "ETH",
    ]),
    "region": frozenset([
        "Africa",
        "Antarctica",
        "Arabian Gulf",
        "Australasia & South Pacific",
        "Bahamas",
        "Caribbean",
        "Indian Ocean & South East Asia",
        "North America",
        "Northern Europe",
        "East Mediterranean",
        "West Mediterranean",
        "South & Central America",
    ]),
}

NUMERIC_KEYS = frozenset(["minLength", "maxLength", "sleeps", "priceMin", "priceMax"])

DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0
DEFAULT_PRICE_MIN = 0
DEFAULT_PRICE_MAX = 1000000


def _first(value: Any) -> Any:
    """Query strings may repeat a key; only the first occurrence counts."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _parse_number(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number) if number.is_integer() else number


def _parse_count(key: str, value: Any, default: int, minimum: int) -> int:
    if value in (None, ""):
        return default
    try:
        count = int(str(value))
    except ValueError:
        logger.warning("Invalid pagination value, using default", key=key, value=value,
                       default=default)
        return default
    if count < minimum:
        logger.warning("Out of range pagination value, using default", key=key, value=count,
                       default=default)
        return default
    return count


def normalize_search_params(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map inbound query parameters onto the marketplace's recognized keys.

    Returns:
        Accepted filters plus ``limit`` and ``offset``. Marketplace defaults
        (company, currency, price range) are added by ``apply_search_defaults``.
    """
    params: Dict[str, Any] = {}

    for key, raw_value in raw.items():
        mapped = PARAMETER_MAPPING.get(key)
        if mapped is None:
            continue

        value = _first(raw_value)
        if value is None or value == "":
            continue

        allowed = ALLOWED_VALUES.get(mapped)
        if allowed is not None and value not in allowed:
            logger.warning("Dropping invalid filter value", key=mapped, value=value)
            continue

        if mapped in NUMERIC_KEYS:
            number = _parse_number(value)
            if number is None:
                logger.warning("Dropping invalid numeric filter", key=mapped, value=value)
                continue
            params[mapped] = number
        else:
            params[mapped] = str(value)

    params["limit"] = _parse_count("limit", _first(raw.get("limit")), DEFAULT_LIMIT, 1)
    params["offset"] = _parse_count("offset", _first(raw.get("offset")), DEFAULT_OFFSET, 0)
    return params


def apply_search_defaults(params: Mapping[str, Any], company: str,
                          currency: str = "USD") -> Dict[str, Any]:
    """Add the parameters the marketplace search endpoint always expects."""
    query = dict(params)
    query["company"] = company
    query.setdefault("currency", currency)
    if "priceMin" not in query and "priceMax" not in query:
        query["priceMin"] = DEFAULT_PRICE_MIN
        query["priceMax"] = DEFAULT_PRICE_MAX
    return query

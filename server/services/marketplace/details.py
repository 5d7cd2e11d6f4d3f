"""Reshape a marketplace entity into the entity-details record."""

from typing import Any, Dict, List

from services.marketplace.pricing import major_units

NOT_AVAILABLE = "N/A"
IMAGE_VARIANT = "1280x"

SPECIFICATION_FIELDS = (
    "make", "model", "builtYear", "refitYear", "length", "beam", "draft", "cabins",
    "sleeps", "bathrooms", "maxCrew", "cruisingCapacity", "staticCapacity", "hullType",
    "hullConstruction", "tonnage", "decks", "architect", "interiorDesigner",
)
PERFORMANCE_FIELDS = ("topSpeed", "cruiseSpeed", "fuelCapacity", "engines")


def _price_range(pricing: Dict[str, Any], period: str, default_currency: str) -> Dict[str, Any]:
    low = pricing.get(f"{period}PricingFrom")
    high = pricing.get(f"{period}PricingTo")
    currency = low.get("displayCurrency") if isinstance(low, dict) else None
    return {
        "from": major_units(low),
        "to": major_units(high),
        "currency": currency or default_currency,
    }


def _amenity(item: Any) -> Dict[str, Any]:
    if isinstance(item, dict):
        return dict(item)
    return {"label": item, "quantity": 1}


def _image(url: str) -> Dict[str, str]:
    return {"url": url, "variant": url.replace("{imageVariant}", IMAGE_VARIANT)}


def build_entity_details(entity: Dict[str, Any], default_currency: str = "USD") -> Dict[str, Any]:
    """Build the details record with every optional field present."""
    blueprint = entity.get("blueprint") or {}
    pricing = entity.get("pricing") or {}

    specifications = {field: blueprint.get(field) or NOT_AVAILABLE for field in SPECIFICATION_FIELDS}
    specifications["superStructure"] = blueprint.get("superStructure") or []

    crew: List[Dict[str, Any]] = [
        {
            "name": member.get("name"),
            "avatar": member.get("avatar"),
            "bio": member.get("bio"),
            "roles": member.get("role") or [],
        }
        for member in entity.get("crew") or []
    ]

    return {
        "uri": entity.get("uri"),
        "name": blueprint.get("name") or entity.get("name") or "Unnamed Yacht",
        "yachtType": entity.get("yachtType") or [],
        "description": entity.get("description") or "No description available",
        "specifications": specifications,
        "performance": {field: blueprint.get(field) or NOT_AVAILABLE for field in PERFORMANCE_FIELDS},
        "amenities": {
            "amenities": [_amenity(a) for a in blueprint.get("amenities") or []],
            "entertainment": blueprint.get("entertainment") or NOT_AVAILABLE,
            "toys": blueprint.get("toys") or [],
            "tenders": blueprint.get("tenders") or [],
        },
        "cabinLayout": [
            {"label": cabin.get("label"), "quantity": cabin.get("quantity")}
            for cabin in blueprint.get("cabinLayout") or []
        ],
        "crew": crew,
        "pricing": {
            "day": _price_range(pricing, "day", default_currency),
            "week": _price_range(pricing, "week", default_currency),
            "pricingInfo": [
                {
                    "name": info.get("name"),
                    "effectiveDates": info.get("effectiveDates"),
                    "pricing": info.get("pricing"),
                    "inclusionZones": info.get("inclusionZones"),
                    "exclusionZones": info.get("exclusionZones"),
                    "petsAllowed": info.get("petsAllowed"),
                }
                for info in pricing.get("pricingInfo") or []
            ],
        },
        "images": [_image(url) for url in blueprint.get("images") or [] if isinstance(url, str)],
    }

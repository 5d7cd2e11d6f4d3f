"""Pydantic v2 models for reshaped marketplace responses."""

from typing import Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Serializes snake_case fields with the camelCase names the frontend expects."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)


class PricePoint(_CamelModel):
    from_: Optional[float] = Field(default=None, alias="from")


class Pricing(_CamelModel):
    """Normalized starting prices in major currency units."""
    currency: str = "USD"
    day: PricePoint = Field(default_factory=PricePoint)
    week: PricePoint = Field(default_factory=PricePoint)
    estimated: bool = False       # Day price derived from the week price


class YachtHit(_CamelModel):
    """One search result with every optional field present."""
    uri: Optional[str] = None
    name: str = "Unnamed Yacht"
    hero: str = "/default-yacht.jpg"
    length: Union[int, float] = 0
    cabins: Union[int, float, None] = None
    sleeps: Union[int, float] = 0
    built_year: Union[int, str] = "N/A"
    make: str = "Unknown"
    yacht_type: Any = None        # Upstream sends a string or a list of strings
    region: Optional[str] = None
    charter_type: Any = None
    operating_areas: List[str] = Field(default_factory=list)
    pricing: Pricing = Field(default_factory=Pricing)


class SearchResult(_CamelModel):
    total: int = 0
    hits: List[YachtHit] = Field(default_factory=list)
    limit: int = 50
    offset: int = 0


class FleetResult(_CamelModel):
    """Company fleet collected across several downstream calls."""
    est_hits: int = 0
    hits: List[dict] = Field(default_factory=list)
    total_fetched: int = 0

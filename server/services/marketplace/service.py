"""Marketplace orchestration: token, downstream queries, enrichment, caching.

Each inbound query is normalized, looked up in the response cache and, on a
miss, translated into one or more marketplace calls whose merged result is
cached for ``response_cache_ttl`` seconds.
"""

import asyncio
import time
from typing import Any, Dict, List, Mapping, Optional, Set, Union

import httpx
import orjson

from core.cache import TTLCache
from core.config import Settings
from core.logging import get_logger, log_execution_time
from services.marketplace.details import build_entity_details
from services.marketplace.exceptions import (
    DownstreamError,
    MarketplaceError,
    QueryValidationError,
)
from services.marketplace.filters import apply_search_defaults, normalize_search_params
from services.marketplace.models import FleetResult, Pricing, SearchResult, YachtHit
from services.marketplace.pricing import as_number, default_pricing, normalize_pricing
from services.marketplace.regions import infer_region, parse_operating_areas, region_for_areas
from services.resilient_fetch import fetch_json, send
from services.token_provider import TokenProvider

logger = get_logger(__name__)

# Free-text hit fields consulted when neither region nor operating areas are set
LOCATION_FIELDS = ("location", "homePort", "cruisingArea")

SORT_ORDERS = ("asc", "desc")
ENTITY_LIST_LIMIT = 300


def cache_key(prefix: str, params: Mapping[str, Any]) -> str:
    """Order-independent key for a parameter mapping."""
    return f"{prefix}:{orjson.dumps(dict(params), option=orjson.OPT_SORT_KEYS).decode()}"


def owned_by(uri: str, company: str) -> bool:
    """Whether a listing URI belongs to ``company`` (``<company>::...``)."""
    return uri == company or uri.startswith(f"{company}::")


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    return value if isinstance(value, str) and value else default


def _built_year(value: Any) -> Union[int, str]:
    if isinstance(value, str) and value.strip():
        return value
    year = as_number(value)
    return int(year) if year else "N/A"


class MarketplaceService:
    """Search, detail and fleet queries against the charter marketplace."""

    def __init__(self, settings: Settings, cache: TTLCache, tokens: TokenProvider,
                 client: httpx.AsyncClient):
        self.settings = settings
        self.cache = cache
        self.tokens = tokens
        self.client = client

    # ------------------------------------------------------------------
    # Downstream plumbing
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.settings.marketplace_api_url}/{path.lstrip('/')}"

    async def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Authorized GET through the resilient fetch helper."""
        token = await self.tokens.get_token()
        try:
            return await fetch_json(
                self.client,
                self._url(path),
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                params=params,
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_delay,
                timeout=self.settings.request_timeout,
            )
        except DownstreamError as e:
            if e.status == 401:
                # Token was revoked or expired early
                self.tokens.invalidate()
            raise

    async def register(self, uri: str, link: Optional[str] = None) -> bool:
        """Register a listing link with the marketplace. Best effort."""
        token = await self.tokens.get_token()
        registered = await send(
            self.client,
            self._url(f"website/register/{uri}"),
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            json={"link": link or f"{self.settings.site_url}/yacht?uri={uri}"},
            timeout=self.settings.request_timeout,
        )
        if registered:
            logger.info("Registered listing", uri=uri)
        return registered

    def _default_pricing(self) -> Pricing:
        return default_pricing(
            self.settings.default_day_price,
            self.settings.default_week_price,
            self.settings.default_currency,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, raw_params: Mapping[str, Any]) -> Dict[str, Any]:
        """Run a filtered search and return ``{total, hits, limit, offset}``."""
        params = normalize_search_params(raw_params)
        key = cache_key("search", params)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Returning cached search response", cache_key=key)
            return cached

        start_time = time.time()
        query = apply_search_defaults(params, self.settings.company_uri,
                                      self.settings.default_currency)
        data = await self._get("website/search", query)
        if not isinstance(data, dict):
            data = {}

        raw_hits = data.get("hits")
        if not isinstance(raw_hits, list):
            raw_hits = []

        hits = await self.enrich_hits(raw_hits)
        total = int(as_number(data.get("estHits")) or as_number(data.get("total")) or len(hits))

        result = SearchResult(
            total=total,
            hits=hits,
            limit=params["limit"],
            offset=params["offset"],
        ).dump()

        self.cache.set(key, result, self.settings.response_cache_ttl)
        log_execution_time(logger, "search", start_time, time.time(),
                           total=result["total"], returned=len(hits))
        return result

    def _base_hit(self, raw: Dict[str, Any]) -> YachtHit:
        """
        Hit with defaults substituted and a best-effort region.

        Upstream values of the wrong type are replaced by the field default,
        so one malformed hit never fails the whole response.
        """
        areas = parse_operating_areas(raw.get("description"))
        region = _text(raw.get("region")) or region_for_areas(areas)
        if not region:
            text = " ".join(str(raw[f]) for f in LOCATION_FIELDS if raw.get(f))
            region = infer_region(text)

        return YachtHit(
            uri=_text(raw.get("uri")),
            name=_text(raw.get("name"), "Unnamed Yacht"),
            hero=_text(raw.get("hero"), "/default-yacht.jpg"),
            length=as_number(raw.get("length")) or 0,
            cabins=as_number(raw.get("cabins")),
            sleeps=as_number(raw.get("sleeps")) or 0,
            built_year=_built_year(raw.get("builtYear")),
            make=_text(raw.get("make"), "Unknown"),
            yacht_type=raw.get("yachtType"),
            region=region,
            charter_type=raw.get("charterType"),
            operating_areas=areas,
            pricing=self._default_pricing(),
        )

    async def enrich_hits(self, raw_hits: List[Any]) -> List[YachtHit]:
        """
        Enrich the first ``enrich_limit`` hits with entity pricing.

        Items are fetched concurrently in batches of ``enrich_batch_size``; a
        batch completes before the next one starts. Items beyond the cap are
        returned unenriched with the configured default pricing.
        """
        raw_hits = [h for h in raw_hits if isinstance(h, dict)]
        limit = self.settings.enrich_limit
        batch_size = self.settings.enrich_batch_size
        to_enrich, remaining = raw_hits[:limit], raw_hits[limit:]

        registration_attempted: Set[str] = set()
        results: List[YachtHit] = []

        for i in range(0, len(to_enrich), batch_size):
            batch = to_enrich[i:i + batch_size]
            logger.debug("Processing enrichment batch", batch=i // batch_size + 1,
                         size=len(batch))
            results.extend(await asyncio.gather(
                *(self._enrich_one(hit, registration_attempted) for hit in batch)
            ))

        results.extend(self._base_hit(hit) for hit in remaining)
        return results

    def _with_own_pricing(self, raw: Dict[str, Any]) -> YachtHit:
        hit = self._base_hit(raw)
        own = normalize_pricing(raw.get("pricing"), hit.pricing)
        if own is not None:
            hit.pricing = own
        return hit

    async def _enrich_one(self, raw: Dict[str, Any], registration_attempted: Set[str]) -> YachtHit:
        hit = self._with_own_pricing(raw)
        if not hit.uri:
            return hit

        try:
            entity = await self._entity(hit.uri, registration_attempted)
        except MarketplaceError as e:
            logger.warning("Could not fetch details for yacht", uri=hit.uri, error=str(e))
            return hit

        pricing = normalize_pricing(entity.get("pricing"), self._default_pricing())
        if pricing is not None:
            hit.pricing = pricing
        else:
            logger.info("No pricing data found for yacht", uri=hit.uri)

        if not hit.region:
            areas = parse_operating_areas(entity.get("description"))
            if areas:
                hit.operating_areas = areas
                hit.region = region_for_areas(areas)
        return hit

    async def _entity(self, uri: str, registration_attempted: Set[str]) -> Dict[str, Any]:
        """Entity record for ``uri``, cached across requests."""
        key = f"entity:{uri}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        entity = await self._get(f"website/entity/{uri}")
        if not isinstance(entity, dict):
            entity = {}

        unpriced = normalize_pricing(entity.get("pricing"), self._default_pricing()) is None
        if unpriced and self.settings.register_unpriced_vessels and uri not in registration_attempted:
            registration_attempted.add(uri)
            if await self.register(uri):
                refreshed = await self._get(f"website/entity/{uri}")
                if isinstance(refreshed, dict):
                    entity = refreshed

        self.cache.set(key, entity, self.settings.response_cache_ttl)
        return entity

    # ------------------------------------------------------------------
    # Entity details
    # ------------------------------------------------------------------

    async def entity_details(self, uri: Optional[str]) -> Dict[str, Any]:
        """Reshaped detail record for one listing."""
        if not uri or not uri.strip():
            raise QueryValidationError("URI parameter is required")
        uri = uri.strip()

        key = f"details:{uri}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Returning cached entity details", uri=uri)
            return cached

        await self.register(uri)
        entity = await self._get(f"website/entity/{uri}")
        if not isinstance(entity, dict):
            entity = {}

        details = build_entity_details(entity, self.settings.default_currency)
        details["uri"] = details["uri"] or uri

        self.cache.set(key, details, self.settings.response_cache_ttl)
        return details

    # ------------------------------------------------------------------
    # Fleet
    # ------------------------------------------------------------------

    async def fleet(self, sort: Optional[str] = None, order: Optional[str] = None) -> Dict[str, Any]:
        """
        Every vessel owned by the fleet company.

        Pages through the search endpoint, then merges the entity vessel list.
        ``totalFetched`` counts unique vessels seen, ``estHits`` those owned
        by the company.
        """
        if order and order not in SORT_ORDERS:
            logger.warning("Dropping invalid sort order", order=order)
            order = None
        params = {"sort": sort or "name", "order": order or "asc"}
        company = self.settings.fleet_company

        key = cache_key("fleet", {**params, "company": company})
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Returning cached fleet response", company=company)
            return cached

        start_time = time.time()
        page_size = self.settings.fleet_page_size
        collected: Dict[str, Dict[str, Any]] = {}

        for page in range(self.settings.fleet_max_pages):
            query = {**params, "company": company, "limit": page_size, "offset": page * page_size}
            try:
                data = await self._get("website/search", query)
            except DownstreamError as e:
                if page == 0:
                    raise
                logger.warning("Stopping fleet pagination", page=page, error=str(e))
                break

            hits = data.get("hits") if isinstance(data, dict) else None
            if not isinstance(hits, list):
                logger.warning("Expected 'hits' to be a list", page=page)
                break

            self._collect(collected, hits)
            if len(hits) < page_size:
                break

        try:
            data = await self._get("entity/vessel/list",
                                   {"company": company, "limit": ENTITY_LIST_LIMIT})
            if isinstance(data, dict) and isinstance(data.get("hits"), list):
                self._collect(collected, data["hits"])
        except DownstreamError as e:
            logger.warning("Entity vessel list unavailable", error=str(e))

        owned = [hit for uri, hit in collected.items() if owned_by(uri, company)]
        result = FleetResult(est_hits=len(owned), hits=owned, total_fetched=len(collected)).dump()

        self.cache.set(key, result, self.settings.response_cache_ttl)
        log_execution_time(logger, "fleet", start_time, time.time(),
                           owned=len(owned), fetched=len(collected))
        return result

    @staticmethod
    def _collect(collected: Dict[str, Dict[str, Any]], hits: List[Any]) -> None:
        """Add hits keyed by uri, keeping the first occurrence."""
        for hit in hits:
            uri = hit.get("uri") if isinstance(hit, dict) else None
            if isinstance(uri, str) and uri and uri not in collected:
                collected[uri] = hit

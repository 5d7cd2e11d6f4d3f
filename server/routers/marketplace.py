"""Charter marketplace proxy routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from core.container import container
from core.logging import get_logger
from services.marketplace.service import MarketplaceService

logger = get_logger(__name__)
router = APIRouter(tags=["marketplace"])


def get_marketplace_service() -> MarketplaceService:
    return container.marketplace_service()


@router.get("/search")
async def search(
    request: Request,
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Filtered yacht search. Unknown or invalid filters are ignored."""
    # Keep every value of a repeated key; the filters use the first one
    params = {key: request.query_params.getlist(key) for key in request.query_params.keys()}
    return await marketplace.search(params)


@router.get("/entity-details")
async def entity_details(
    uri: Optional[str] = Query(default=None),
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Reshaped details for one listing."""
    return await marketplace.entity_details(uri)


@router.get("/fleet")
async def fleet(
    sort: Optional[str] = Query(default=None),
    order: Optional[str] = Query(default=None),
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Every vessel owned by the configured fleet company."""
    return await marketplace.fleet(sort=sort, order=order)

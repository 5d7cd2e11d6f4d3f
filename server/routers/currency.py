"""Currency conversion route."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.container import container
from services.currency import ExchangeRateService

router = APIRouter(tags=["currency"])


@router.get("/currency")
async def convert_currency(
    base: str = Query(default="USD", alias="from"),
    to: Optional[str] = Query(default=None),
    amount: str = Query(default="1"),
    rates: ExchangeRateService = Depends(lambda: container.exchange_rate_service())
):
    """Convert ``amount`` between currencies, or list rates for ``from``."""
    return await rates.convert(base=base, to=to, amount=amount)

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from dashboard.dependencies import get_service
from dashboard.schemas import MarketPriceResponse, MarketSizesResponse
from dashboard.services import DashboardService, clean_sku
from market_pricing.currency import SUPPORTED_CURRENCIES
from market_pricing.exceptions import PricingError

router = APIRouter(prefix="/market", tags=["Market Data"])

def _check_currency(currency: Optional[str]) -> Optional[str]:
    if currency is None:
        return None
    currency = currency.upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise HTTPException(status_code=400, detail=f"Unsupported currency: {currency}")
    return currency

@router.get("/{sku}/sizes", response_model=MarketSizesResponse)
def get_market_sizes(
    sku: str,
    currency: Optional[str] = None,
    region_id: Optional[str] = Query(None, pattern="^[123]$"),
    service: DashboardService = Depends(get_service),
):
    """
    StockX and Alias market data joined per size.
    """
    rows = service.get_market_sizes(sku, _check_currency(currency), region_id)
    if rows is None:
        raise HTTPException(status_code=404, detail=f"No market data for {clean_sku(sku)}")
    return MarketSizesResponse(
        success=True,
        sku=clean_sku(sku),
        region_id=region_id or service.pricing.config.alias_region_id,
        data=rows,
    )

@router.get("/{sku}/price", response_model=MarketPriceResponse)
def get_market_price(
    sku: str,
    size: str = Query(..., min_length=1),
    currency: Optional[str] = None,
    cost: Optional[Decimal] = Query(None, gt=0),
    service: DashboardService = Depends(get_service),
):
    """
    Unified price with platform fees and net proceeds for one size.
    """
    currency = _check_currency(currency) or service.pricing.config.user_currency
    try:
        result = service.get_market_price(sku, size, currency, cost)
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail=f"No market data for {clean_sku(sku)}")
    return MarketPriceResponse(
        success=True,
        sku=clean_sku(sku),
        size=size,
        currency=currency,
        data=result["price"],
        options=result["options"],
        message=None if result["price"] else f"No asks for size {size}",
    )

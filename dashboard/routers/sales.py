from typing import Optional

from fastapi import APIRouter, Depends, Query

from dashboard.dependencies import get_service
from dashboard.schemas import DailySalesResponse
from dashboard.services import DashboardService, clean_sku

router = APIRouter(prefix="/sales", tags=["Sales"])

@router.get("/{sku}/daily", response_model=DailySalesResponse)
def get_daily_sales(
    sku: str,
    days: int = Query(30, ge=1, le=400),
    size: Optional[str] = None,
    provider: Optional[str] = Query(None, pattern="^(stockx|alias)$"),
    service: DashboardService = Depends(get_service),
):
    """
    Daily sales buckets for complete days.
    """
    return DailySalesResponse(
        success=True,
        sku=clean_sku(sku),
        data=service.get_daily_sales(sku, days=days, size=size, provider=provider),
    )

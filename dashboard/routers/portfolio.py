from typing import Optional

from fastapi import APIRouter, HTTPException, Depends

from dashboard.dependencies import get_service
from dashboard.schemas import ItemROIResponse, PortfolioOverviewResponse, RepricingResponse
from dashboard.services import DashboardService
from market_pricing.exceptions import PricingError
from storage.repositories.exceptions import RepositoryException

router = APIRouter(prefix="/portfolio", tags=["Portfolio"])

@router.get("/overview", response_model=PortfolioOverviewResponse)
def get_portfolio_overview(owner_id: Optional[str] = None, service: DashboardService = Depends(get_service)):
    """
    Portfolio KPIs, category breakdown and 30-day value series.
    """
    try:
        return PortfolioOverviewResponse(success=True, data=service.get_portfolio_overview(owner_id))
    except (PricingError, RepositoryException) as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/repricing", response_model=RepricingResponse)
def get_repricing(owner_id: Optional[str] = None, service: DashboardService = Depends(get_service)):
    """
    Repricing suggestions, most urgent first.
    """
    try:
        return RepricingResponse(success=True, data=service.get_repricing(owner_id))
    except (PricingError, RepositoryException) as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/roi", response_model=ItemROIResponse)
def get_item_rois(owner_id: Optional[str] = None, service: DashboardService = Depends(get_service)):
    try:
        return ItemROIResponse(success=True, data=service.get_item_rois(owner_id))
    except (PricingError, RepositoryException) as e:
        raise HTTPException(status_code=500, detail=str(e))

from fastapi import APIRouter, HTTPException, Depends

from dashboard.dependencies import get_service
from dashboard.schemas import EnqueueRequest, EnqueueResponse, QueueStatsResponse, SyncStatusResponse
from dashboard.services import DashboardService
from market_sync.exceptions import QueueError
from storage.repositories.exceptions import RepositoryException

router = APIRouter(prefix="/sync", tags=["Sync Queue"])

@router.get("/queue", response_model=QueueStatsResponse)
def get_queue_stats(service: DashboardService = Depends(get_service)):
    """
    Job counts per status.
    """
    try:
        return QueueStatsResponse(success=True, data=service.get_queue_stats())
    except RepositoryException as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/queue", response_model=EnqueueResponse, status_code=202)
def enqueue_sync(request: EnqueueRequest, service: DashboardService = Depends(get_service)):
    """
    Queue StockX and/or Alias syncs for a SKU.
    """
    try:
        return EnqueueResponse(success=True, data=service.enqueue(request.sku, request.providers))
    except QueueError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except RepositoryException as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/{sku}/status", response_model=SyncStatusResponse)
def get_sync_status(sku: str, service: DashboardService = Depends(get_service)):
    return SyncStatusResponse(success=True, data=service.get_sync_status(sku))

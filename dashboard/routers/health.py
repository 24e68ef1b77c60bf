from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dashboard.dependencies import get_db
from dashboard.schemas import DatabaseHealthResponse, TableCountsResponse
from dashboard.services import DashboardService

router = APIRouter(prefix="/health", tags=["System Health"])


@router.get("/database", response_model=DatabaseHealthResponse)
def get_database_health(db: Session = Depends(get_db)):
    """
    Ping the database and list missing tables.

    503 when the database cannot be queried. Missing tables are
    reported with success=false; run `python -m orchestrator serve`
    or any CLI command to create them.
    """
    try:
        missing = DashboardService(db).check_database()
    except SQLAlchemyError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return DatabaseHealthResponse(
        success=not missing,
        database="ok" if not missing else "incomplete",
        tables_missing=missing,
    )


@router.get("/tables", response_model=TableCountsResponse)
def get_table_counts(db: Session = Depends(get_db)):
    """Row counts per table (inventory, snapshots, sales, sync jobs)."""
    try:
        return TableCountsResponse(success=True, data=DashboardService(db).get_table_counts())
    except SQLAlchemyError as e:
        raise HTTPException(status_code=503, detail=str(e))

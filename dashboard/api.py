"""
Dashboard - API.

============================================================
RESPONSIBILITY
============================================================
REST API over portfolio valuation, unified market prices,
the sync queue and sales rollups.

Routers:
- /health     database ping, missing tables, row counts
- /portfolio  overview, ROI, repricing
- /market     per-size unified prices and sell options
- /sync       queue jobs, per-SKU status, queue stats
- /sales      daily sales buckets

Served by uvicorn via `python -m orchestrator serve`.
============================================================
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.clock import now_utc
from dashboard.dependencies import get_pricing_engine
from dashboard.routers import health, market, portfolio, sales, sync
from dashboard.schemas import HealthResponse

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
SERVICE_NAME = "Sneaker Portfolio API"

_startup_time = now_utc()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_pricing_engine().config
    logger.info(
        f"{SERVICE_NAME} {API_VERSION} up "
        f"(currency={config.user_currency}, alias_region={config.alias_region_id})"
    )
    yield
    logger.info(f"{SERVICE_NAME} shutting down")


app = FastAPI(
    title=SERVICE_NAME,
    description="Portfolio valuation, unified StockX/Alias pricing and market sync control",
    version=API_VERSION,
    lifespan=lifespan,
)

# Browser dashboards served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(portfolio.router)
app.include_router(market.router)
app.include_router(sync.router)
app.include_router(sales.router)


@app.get("/", tags=["Root"])
async def root():
    return {
        "service": SERVICE_NAME,
        "version": API_VERSION,
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Liveness only; /health/database checks storage."""
    now = now_utc()
    return HealthResponse(
        status="healthy",
        timestamp=now.isoformat(),
        version=API_VERSION,
        uptime_seconds=(now - _startup_time).total_seconds(),
    )

"""
Pydantic schemas for Dashboard API responses.

Money values are serialized as decimal strings so no
precision is lost between the database and the client.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.clock import now_utc

# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=now_utc)

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"
    uptime_seconds: float = 0

class DatabaseHealthResponse(BaseResponse):
    database: str
    tables_missing: List[str] = []

class TableCountsResponse(BaseResponse):
    data: Dict[str, int]

# =======================
# 1. PORTFOLIO
# =======================

class PortfolioOverviewResponse(BaseResponse):
    data: Dict[str, Any]

class RepricingSuggestionRecord(BaseModel):
    item_id: str
    sku: str
    brand: Optional[str] = None
    model: Optional[str] = None
    size_uk: Optional[str] = None
    current_price: str
    purchase_cost: str
    days_in_inventory: int
    market_lowest_ask: Optional[str] = None
    market_highest_bid: Optional[str] = None
    suggested_price: str
    price_change: str
    price_change_pct: str
    expected_margin: str
    reason: str
    urgency: str  # high, medium, low
    confidence: str

class RepricingResponse(BaseResponse):
    data: List[RepricingSuggestionRecord]

class ItemROIRecord(BaseModel):
    item_id: str
    sku: str
    cost: str
    market_value: Optional[str] = None
    profit: Optional[str] = None
    roi_pct: Optional[str] = None

class ItemROIResponse(BaseResponse):
    data: List[ItemROIRecord]

# =======================
# 2. MARKET
# =======================

class MarketSizesResponse(BaseResponse):
    sku: str
    region_id: str
    data: List[Dict[str, Any]]

class MarketPriceResponse(BaseResponse):
    sku: str
    size: str
    currency: str
    data: Optional[Dict[str, Any]] = None
    options: Optional[Dict[str, Any]] = None

# =======================
# 3. SYNC QUEUE
# =======================

class QueueStatsRecord(BaseModel):
    pending: int
    running: int
    done: int
    failed: int
    total: int

class QueueStatsResponse(BaseResponse):
    data: QueueStatsRecord

class EnqueueRequest(BaseModel):
    sku: str = Field(..., min_length=1, max_length=32)
    providers: Optional[List[str]] = None

class EnqueuedJob(BaseModel):
    id: str
    sku: str
    provider: str
    status: str

class EnqueueResponse(BaseResponse):
    data: List[EnqueuedJob]

class SyncStatusResponse(BaseResponse):
    data: Dict[str, Any]

# =======================
# 4. SALES
# =======================

class DailySalesRecord(BaseModel):
    provider: str
    provider_product_id: str
    sku: Optional[str] = None
    size_key: str
    currency: str
    sale_date: str
    sale_count: int
    total_revenue: str
    avg_price: str
    min_price: str
    max_price: str
    consigned_count: int
    non_consigned_count: int

class DailySalesResponse(BaseResponse):
    sku: str
    data: List[DailySalesRecord]

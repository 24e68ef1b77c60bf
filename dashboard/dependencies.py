"""
Shared FastAPI dependencies.

PORTFOLIO_CONFIG points at the YAML file also accepted by the
CLI's --config; its pricing section (user currency, Alias
region, fee rates) is read once per process.
"""
import os
from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from dashboard.services import DashboardService
from database.engine import get_session
from market_pricing import PricingEngine
from market_pricing import load_config as load_pricing_config


def get_db() -> Generator[Session, None, None]:
    db = get_session()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_pricing_engine() -> PricingEngine:
    return PricingEngine(load_pricing_config(os.getenv("PORTFOLIO_CONFIG")))


def get_service(db: Session = Depends(get_db)) -> DashboardService:
    return DashboardService(db, get_pricing_engine())

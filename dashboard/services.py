"""
Database Query Services for Dashboard.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from data_ingestion.normalizers.alias_mapper import region_code
from data_ingestion.normalizers.sku import normalize_sku
from data_sources.models import Provider
from database.engine import REQUIRED_TABLES, verify_required_tables
from market_pricing.engine import PricingEngine
from market_pricing.options import get_all_pricing_options, get_flex_savings, get_consigned_comparison
from market_pricing.unifier import find_size, split_provider_rows, unify_variants
from market_sync.queue import SyncQueue
from portfolio.service import PortfolioService
from portfolio.valuation import size_matches
from sales_analytics.service import SalesRollupService
from storage.models import Base
from storage.repositories.market import MarketRepository


def clean_sku(sku: str) -> str:
    return normalize_sku(sku) or sku.strip().upper()


class DashboardService:
    def __init__(self, session: Session, pricing: Optional[PricingEngine] = None):
        self.session = session
        self.pricing = pricing or PricingEngine()
        self.market = MarketRepository(session)

    # =======================
    # 0. HEALTH
    # =======================
    def check_database(self) -> List[str]:
        """Ping the database; returns required tables that are missing."""
        self.session.execute(text("SELECT 1"))
        return verify_required_tables(self.session.connection())

    def get_table_counts(self) -> Dict[str, int]:
        present = set(REQUIRED_TABLES) - set(self.check_database())
        return {
            name: self.session.execute(
                select(func.count()).select_from(Base.metadata.tables[name])
            ).scalar_one()
            for name in REQUIRED_TABLES
            if name in present
        }

    # =======================
    # 1. PORTFOLIO
    # =======================
    def get_portfolio_overview(self, owner_id: Optional[str] = None) -> Dict[str, Any]:
        return PortfolioService(self.session, self.pricing).overview(owner_id).to_dict()

    def get_repricing(self, owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
        suggestions = PortfolioService(self.session, self.pricing).repricing(owner_id)
        return [s.to_dict() for s in suggestions]

    def get_item_rois(self, owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in PortfolioService(self.session, self.pricing).item_rois(owner_id)]

    # =======================
    # 2. MARKET
    # =======================
    def get_market_sizes(
        self,
        sku: str,
        currency: Optional[str] = None,
        region_id: Optional[str] = None,
    ) -> Optional[List[Dict[str, Any]]]:
        """Unified size rows, or None when nothing is stored for the SKU."""
        rows = self.market.get_rows(sku=clean_sku(sku))
        if not rows:
            return None
        config = self.pricing.config
        stockx_rows, alias_rows = split_provider_rows(rows, currency or config.user_currency)
        unified = unify_variants(
            stockx_rows,
            alias_rows,
            region_id=region_id or config.alias_region_id,
            consigned=config.alias_consigned,
        )
        return [row.to_dict() for row in unified]

    def get_market_price(
        self,
        sku: str,
        size: str,
        currency: Optional[str] = None,
        cost: Optional[Decimal] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Unified price with fees and the per-program options for
        one size. None when the SKU has no stored market data.
        """
        sku = clean_sku(sku)
        rows = self.market.get_rows(sku=sku)
        if not rows:
            return None

        config = self.pricing.config
        currency = (currency or config.user_currency).upper()
        stockx_rows, alias_rows = split_provider_rows(rows, currency)
        unified = unify_variants(
            stockx_rows,
            alias_rows,
            region_id=config.alias_region_id,
            consigned=config.alias_consigned,
        )

        row = find_size(unified, size)
        price = self.pricing.price_row(sku, row, cost=cost, user_currency=currency) if row else None

        region = region_code(config.alias_region_id)
        size_rows = [
            r for r in stockx_rows + alias_rows
            if size_matches(r.size_key, size)
            and (r.provider == Provider.STOCKX.value or r.region == region)
        ]
        flex = get_flex_savings(size_rows)
        consigned = get_consigned_comparison(size_rows)

        return {
            "price": price.to_dict() if price else None,
            "options": {
                **get_all_pricing_options(size_rows).to_dict(),
                "flex_savings": flex.to_dict() if flex else None,
                "consigned_comparison": consigned.to_dict() if consigned else None,
            },
        }

    # =======================
    # 3. SYNC QUEUE
    # =======================
    def get_queue_stats(self) -> Dict[str, int]:
        return SyncQueue(self.session).stats().to_dict()

    def enqueue(self, sku: str, providers: Optional[List[str]] = None) -> List[Dict[str, str]]:
        queue = SyncQueue(self.session)
        jobs = queue.enqueue_sku(sku, providers) if providers else queue.enqueue_sku(sku)
        self.session.commit()
        return [
            {"id": str(job.id), "sku": job.sku, "provider": job.provider, "status": job.status}
            for job in jobs
        ]

    def get_sync_status(self, sku: str) -> Dict[str, Any]:
        return SyncQueue(self.session).status(sku).to_dict()

    # =======================
    # 4. SALES
    # =======================
    def get_daily_sales(
        self,
        sku: str,
        days: int = 30,
        size: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        daily = SalesRollupService(self.session).daily(
            clean_sku(sku), days=days, size_key=size, provider=provider
        )
        return [d.to_dict() for d in daily]

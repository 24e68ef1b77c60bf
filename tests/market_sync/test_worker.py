"""
Tests for the Sync Queue Worker.

============================================================
PURPOSE
============================================================
1. Jobs dispatch to the matching provider sync
2. Unrunnable jobs fail with a clear error
3. Provider failures reschedule the job
4. Jobs are paced within a batch

============================================================
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def services():
    """Patch both provider sync services with mocks."""
    with patch("market_sync.worker.StockXSyncService") as stockx_cls, \
            patch("market_sync.worker.AliasSyncService") as alias_cls:
        stockx = stockx_cls.return_value
        alias = alias_cls.return_value
        stockx.sync_product = AsyncMock()
        alias.sync_catalog = AsyncMock()
        yield stockx, alias


@pytest.fixture
def worker(session, clock, services):
    from market_sync.worker import SyncQueueWorker

    return SyncQueueWorker(session, stockx_source=MagicMock(), alias_source=MagicMock())


@pytest.fixture
def mapped(session):
    """Catalog entry mapped on both providers."""
    from storage.repositories import CatalogRepository

    catalog = CatalogRepository(session)
    catalog.set_provider_id("DD1391-100", "stockx", "sx-prod-1")
    catalog.set_provider_id("DD1391-100", "alias", "alias-cat-1")
    session.commit()


def _result(provider, success=True, error=None):
    from market_sync.types import SyncResult, SyncStage

    result = SyncResult(provider=provider, sku="DD1391-100", success=success)
    if error:
        result.add_error(SyncStage.VARIANTS, error)
    return result


# ============================================================
# DISPATCH TESTS
# ============================================================

class TestProcessBatch:
    """Tests for SyncQueueWorker.process_batch."""

    @pytest.mark.asyncio
    async def test_successful_jobs(self, worker, services, mapped):
        stockx, alias = services
        stockx.sync_product.return_value = _result("stockx")
        alias.sync_catalog.return_value = _result("alias")
        worker.queue.enqueue_sku("DD1391-100")

        result = await worker.process_batch(delay_ms=0)

        assert result.processed == 2
        assert result.successful == 2
        assert result.failed == 0
        stockx.sync_product.assert_awaited_once_with(sku="DD1391-100", product_id="sx-prod-1", force=True)
        alias.sync_catalog.assert_awaited_once_with("alias-cat-1", sku="DD1391-100", force=True)
        assert worker.queue.stats().done == 2

    @pytest.mark.asyncio
    async def test_unknown_sku(self, worker):
        worker.queue.enqueue("DD1391-100", "stockx")

        result = await worker.process_batch(delay_ms=0)

        assert result.failed == 1
        assert result.errors[0]["sku"] == "DD1391-100"
        assert result.errors[0]["provider"] == "stockx"
        assert result.errors[0]["error"] == "Style DD1391-100 not found in catalog"

        status = worker.queue.status("DD1391-100")
        assert status.stockx.status == "not_mapped"
        assert worker.queue.stats().pending == 1

    @pytest.mark.asyncio
    async def test_alias_without_catalog_id(self, session, worker):
        from storage.repositories import CatalogRepository

        CatalogRepository(session).set_provider_id("DD1391-100", "stockx", "sx-prod-1")
        worker.queue.enqueue("DD1391-100", "alias")

        result = await worker.process_batch(delay_ms=0)
        assert result.errors[0]["error"] == "Style DD1391-100 has no alias_catalog_id"

    @pytest.mark.asyncio
    async def test_unsuccessful_sync_fails_job(self, worker, services, mapped):
        """The first recorded stage error becomes the job error."""
        stockx, _ = services
        stockx.sync_product.return_value = _result("stockx", success=False, error="No variants found")
        job = worker.queue.enqueue("DD1391-100", "stockx")

        result = await worker.process_batch(delay_ms=0)

        assert result.failed == 1
        assert job.status == "pending"
        assert job.attempts == 1
        assert job.last_error == "No variants found"
        assert job.next_retry_at is not None

    @pytest.mark.asyncio
    async def test_data_source_error(self, worker, services, mapped):
        from data_sources.exceptions import FetchError

        stockx, _ = services
        stockx.sync_product.side_effect = FetchError("HTTP 503", "stockx", status_code=503)
        worker.queue.enqueue("DD1391-100", "stockx")

        result = await worker.process_batch(delay_ms=0)

        assert result.failed == 1
        assert "HTTP 503" in result.errors[0]["error"]

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_job(self, worker, services, mapped):
        """A crash inside one sync reschedules that job and the batch carries on."""
        stockx, alias = services
        stockx.sync_product.side_effect = ValueError("bad payload")
        alias.sync_catalog.return_value = _result("alias")
        stockx_job = worker.queue.enqueue("DD1391-100", "stockx")
        alias_job = worker.queue.enqueue("DD1391-100", "alias")

        result = await worker.process_batch(delay_ms=0)

        assert result.processed == 2
        assert result.successful == 1
        assert result.failed == 1
        assert result.errors[0]["error"] == "ValueError: bad payload"
        assert stockx_job.status == "pending"
        assert stockx_job.attempts == 1
        assert stockx_job.last_error == "ValueError: bad payload"
        assert stockx_job.next_retry_at is not None
        assert alias_job.status == "done"
        alias.sync_catalog.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provider_filter(self, worker, services, mapped):
        stockx, alias = services
        alias.sync_catalog.return_value = _result("alias")
        worker.queue.enqueue_sku("DD1391-100")

        result = await worker.process_batch(delay_ms=0, provider="alias")

        assert result.processed == 1
        stockx.sync_product.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delay_between_jobs(self, worker, services, mapped):
        stockx, alias = services
        stockx.sync_product.return_value = _result("stockx")
        alias.sync_catalog.return_value = _result("alias")
        worker.queue.enqueue_sku("DD1391-100")

        with patch("market_sync.worker.asyncio.sleep", new=AsyncMock()) as sleep:
            await worker.process_batch(delay_ms=250)

        sleep.assert_awaited_once_with(0.25)

    @pytest.mark.asyncio
    async def test_empty_queue(self, worker):
        result = await worker.process_batch()
        assert result.processed == 0
        assert result.errors == []

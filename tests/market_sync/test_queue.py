"""
Tests for the Sync Queue.

============================================================
PURPOSE
============================================================
1. Enqueue and re-queue semantics
2. Claiming, completion and failure backoff
3. Attempts exhaustion and failed job reset
4. Stale job recovery
5. Per-SKU status and queue stats

============================================================
"""

import pytest
from datetime import datetime, timedelta, timezone


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def queue(session, clock):
    from market_sync.queue import SyncQueue

    return SyncQueue(session)


# ============================================================
# OVERALL STATUS TESTS
# ============================================================

class TestDeriveOverallStatus:
    """Tests for derive_overall_status."""

    @pytest.mark.parametrize("stockx,alias,expected", [
        ("pending", "done", "syncing"),
        ("not_mapped", "running", "syncing"),
        ("done", "done", "ready"),
        ("not_mapped", "not_mapped", "not_mapped"),
        ("done", "failed", "partial"),
        ("done", "not_mapped", "partial"),
        ("failed", "failed", "failed"),
        ("failed", "not_mapped", "failed"),
    ])
    def test_combinations(self, stockx, alias, expected):
        from market_sync.queue import derive_overall_status

        assert derive_overall_status(stockx, alias).value == expected


# ============================================================
# ENQUEUE TESTS
# ============================================================

class TestEnqueue:
    """Tests for enqueue and enqueue_sku."""

    def test_new_job(self, queue):
        job = queue.enqueue("dd1391 100", "StockX")

        assert job.sku == "DD1391-100"
        assert job.provider == "stockx"
        assert job.status == "pending"
        assert job.attempts == 0
        assert job.max_attempts == 3
        assert job.created_at == NOW

    def test_active_job_returned_unchanged(self, queue):
        job = queue.enqueue("DD1391-100", "stockx")
        [claimed] = queue.claim_batch(now=NOW)

        again = queue.enqueue("DD1391-100", "stockx")
        assert again.id == job.id
        assert again.status == "running"
        assert again.attempts == 1

    def test_finished_job_is_reset(self, queue):
        queue.enqueue("DD1391-100", "stockx")
        [job] = queue.claim_batch(now=NOW)
        queue.complete(job, now=NOW)
        assert job.status == "done"
        assert job.completed_at == NOW

        again = queue.enqueue("DD1391-100", "stockx")
        assert again.id == job.id
        assert again.status == "pending"
        assert again.attempts == 0
        assert again.completed_at is None

    def test_unknown_provider(self, queue):
        from market_sync.exceptions import QueueError

        with pytest.raises(QueueError):
            queue.enqueue("DD1391-100", "ebay")

    def test_enqueue_sku(self, queue):
        jobs = queue.enqueue_sku("DD1391-100")
        assert [j.provider for j in jobs] == ["stockx", "alias"]
        assert queue.stats().pending == 2


# ============================================================
# WORKER OPERATION TESTS
# ============================================================

class TestClaimAndFinish:
    """Tests for claim_batch, complete and fail."""

    def test_claim_marks_running(self, queue):
        queue.enqueue_sku("DD1391-100")
        jobs = queue.claim_batch(limit=1, now=NOW)

        assert len(jobs) == 1
        assert jobs[0].status == "running"
        assert jobs[0].attempts == 1
        assert jobs[0].last_attempt_at == NOW

    def test_claim_provider_filter(self, queue):
        queue.enqueue_sku("DD1391-100")
        [job] = queue.claim_batch(provider="alias", now=NOW)
        assert job.provider == "alias"

    def test_complete_requires_running(self, queue):
        from market_sync.exceptions import QueueError

        job = queue.enqueue("DD1391-100", "stockx")
        with pytest.raises(QueueError):
            queue.complete(job)

    def test_fail_backs_off(self, queue):
        """First failure waits 2 minutes before the job is claimable."""
        queue.enqueue("DD1391-100", "stockx")
        [job] = queue.claim_batch(now=NOW)
        queue.fail(job, "HTTP 502", now=NOW)

        assert job.status == "pending"
        assert job.last_error == "HTTP 502"
        assert job.next_retry_at == NOW + timedelta(minutes=2)
        assert queue.claim_batch(now=NOW + timedelta(minutes=1)) == []
        assert len(queue.claim_batch(now=NOW + timedelta(minutes=2))) == 1

    def test_attempts_exhausted(self, queue):
        queue.enqueue("DD1391-100", "stockx")
        at = NOW
        for _ in range(3):
            [job] = queue.claim_batch(now=at)
            queue.fail(job, "boom", now=at)
            at = at + timedelta(minutes=30)

        assert job.status == "failed"
        assert job.attempts == 3
        assert job.next_retry_at is None
        assert queue.claim_batch(now=at) == []

        assert queue.retry_failed() == 1
        assert job.status == "pending"
        assert job.attempts == 0

    def test_error_truncated(self, queue):
        queue.enqueue("DD1391-100", "stockx")
        [job] = queue.claim_batch(now=NOW)
        queue.fail(job, "x" * 1500, now=NOW)
        assert len(job.last_error) == 1000

    def test_recover_stale(self, queue):
        queue.enqueue("DD1391-100", "stockx")
        [job] = queue.claim_batch(now=NOW)

        assert queue.recover_stale(now=NOW + timedelta(minutes=4)) == 0
        assert queue.recover_stale(now=NOW + timedelta(minutes=6)) == 1
        assert job.status == "pending"
        assert job.last_error == "Timeout: job processing exceeded 5 minutes"


# ============================================================
# STATUS TESTS
# ============================================================

class TestStatus:
    """Tests for status, retry and stats."""

    def test_unknown_sku(self, queue):
        status = queue.status("DD1391-100")
        assert status.overall.value == "not_mapped"
        assert status.stockx.status == "not_mapped"

    def test_mapped_without_data_is_pending(self, session, queue):
        from storage.repositories import CatalogRepository

        CatalogRepository(session).set_provider_id("DD1391-100", "stockx", "sx-prod-1")
        status = queue.status("DD1391-100")

        assert status.stockx.status == "pending"
        assert status.alias.status == "not_mapped"
        assert status.overall.value == "syncing"

    def test_market_data_counts_as_done(self, session, queue, make_row):
        from storage.repositories import CatalogRepository, MarketRepository

        CatalogRepository(session).set_provider_id("DD1391-100", "stockx", "sx-prod-1")
        MarketRepository(session).upsert_rows([make_row()])

        status = queue.status("DD1391-100")
        assert status.stockx.status == "done"
        assert status.overall.value == "partial"

    def test_job_state_wins(self, session, queue):
        from storage.repositories import CatalogRepository

        catalog = CatalogRepository(session)
        catalog.set_provider_id("DD1391-100", "stockx", "sx-prod-1")
        catalog.set_provider_id("DD1391-100", "alias", "alias-cat-1")
        queue.enqueue("DD1391-100", "alias")
        [job] = queue.claim_batch(now=NOW)
        queue.complete(job, now=NOW)

        status = queue.status("DD1391-100")
        assert status.alias.status == "done"
        assert status.alias.last_attempt_at == NOW
        assert status.to_dict()["overall"] == "syncing"

    def test_retry_without_alias_mapping(self, session, queue):
        from storage.repositories import CatalogRepository

        CatalogRepository(session).set_provider_id("DD1391-100", "stockx", "sx-prod-1")
        result = queue.retry("DD1391-100")

        assert [j["provider"] for j in result.jobs_created] == ["stockx"]
        assert result.errors == ["No Alias catalog ID for DD1391-100 - cannot sync"]

    def test_retry_skips_done(self, session, queue, make_row):
        from storage.repositories import CatalogRepository, MarketRepository

        CatalogRepository(session).set_provider_id("DD1391-100", "stockx", "sx-prod-1")
        MarketRepository(session).upsert_rows([make_row()])

        result = queue.retry("DD1391-100", provider="stockx")
        assert result.jobs_created == []

    def test_stats(self, queue):
        queue.enqueue_sku("DD1391-100")
        queue.enqueue("555088-134", "stockx")
        [job] = queue.claim_batch(limit=1, provider="alias", now=NOW)
        queue.complete(job, now=NOW)
        queue.claim_batch(limit=1, provider="stockx", now=NOW)

        stats = queue.stats()
        assert stats.pending == 1
        assert stats.running == 1
        assert stats.done == 1
        assert stats.to_dict()["total"] == 3

"""
Source Registry.

The set of configured marketplaces (StockX, Alias) in
priority order. Each marketplace has its own prices, so
callers either target one provider or fan out to all; only
provider-agnostic lookups such as catalog search stop at the
first provider with an answer.

Usage:
    registry = setup_default_sources(SourceRegistry())
    by_provider = await registry.fetch_from_all(request)
    health = await registry.health_check_all()
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from core.clock import now_utc
from data_sources.base import BaseMarketDataSource
from data_sources.exceptions import DataSourceError
from data_sources.models import (
    FetchRequest,
    NormalizedRecord,
    SourceHealth,
    SourceIncident,
    SourceStatus,
)


logger = logging.getLogger(__name__)

IncidentCallback = Callable[[SourceIncident], None]
RecoveryCallback = Callable[[str], None]


class SourceRegistry:
    """Marketplace sources keyed by provider value."""

    def __init__(self, max_incidents: int = 1000) -> None:
        self._sources: dict[str, BaseMarketDataSource] = {}
        self._priorities: dict[str, int] = {}
        self._incidents: list[SourceIncident] = []
        self._max_incidents = max_incidents
        self._incident_callbacks: list[IncidentCallback] = []
        self._recovery_callbacks: list[RecoveryCallback] = []

    # =========================================================
    # REGISTRATION
    # =========================================================

    def register(self, source: BaseMarketDataSource, priority: Optional[int] = None) -> None:
        """
        Add or replace a provider.

        Args:
            source: Marketplace client
            priority: Lower runs first (default: metadata priority)
        """
        if source.name in self._sources:
            logger.warning(f"Replacing registered source '{source.name}'")
        self._sources[source.name] = source
        self._priorities[source.name] = source.metadata().priority if priority is None else priority
        logger.info(f"Registered source '{source.name}' (priority {self._priorities[source.name]})")

    def unregister(self, name: str) -> Optional[BaseMarketDataSource]:
        self._priorities.pop(name, None)
        return self._sources.pop(name, None)

    def get_source(self, name: str) -> Optional[BaseMarketDataSource]:
        return self._sources.get(name)

    def list_sources(self) -> list[str]:
        """Provider names, highest priority first."""
        return sorted(self._sources, key=lambda name: self._priorities[name])

    def _candidates(self, request: FetchRequest) -> list[str]:
        return [
            name for name in self.list_sources()
            if self._sources[name].is_usable()
            and self._sources[name].metadata().supports(request.data_type)
        ]

    # =========================================================
    # FETCHING
    # =========================================================

    async def fetch(self, provider: str, request: FetchRequest) -> list[NormalizedRecord]:
        """
        Fetch from one provider.

        Raises:
            KeyError: If the provider is not registered
            DataSourceError: If the fetch fails
        """
        try:
            return await self._sources[provider].fetch_or_raise(request)
        except DataSourceError as e:
            self._record_incident(provider, "fetch_error", str(e), request)
            raise

    async def fetch_first(
        self,
        request: FetchRequest,
    ) -> tuple[Optional[str], list[NormalizedRecord]]:
        """
        First usable provider with a non-empty answer.

        Returns (None, []) when every provider failed or came
        back empty; failures are kept as incidents.
        """
        tried = self._candidates(request)
        for name in tried:
            try:
                records = await self.fetch(name, request)
            except DataSourceError:
                continue
            if records:
                return name, records
        logger.info(f"No provider answered {request.describe()} (tried {tried})")
        return None, []

    async def fetch_from_all(self, request: FetchRequest) -> dict[str, list[NormalizedRecord]]:
        """Concurrent fetch; a failing provider maps to []."""
        names = self._candidates(request)
        outcomes = await asyncio.gather(
            *(self.fetch(name, request) for name in names),
            return_exceptions=True,
        )
        results: dict[str, list[NormalizedRecord]] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{name}] {request.describe()} failed: {outcome}")
                outcome = []
            results[name] = outcome
        return results

    # =========================================================
    # HEALTH
    # =========================================================

    async def health_check_all(self) -> dict[str, SourceHealth]:
        """Probe every provider; a provider coming back healthy fires recovery callbacks."""
        names = self.list_sources()
        before = {name: self._sources[name].get_health().status for name in names}
        outcomes = await asyncio.gather(
            *(self._sources[name].health_check() for name in names),
            return_exceptions=True,
        )

        results: dict[str, SourceHealth] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                outcome = SourceHealth(
                    status=SourceStatus.UNAVAILABLE,
                    last_check=now_utc(),
                    last_error=str(outcome),
                )
            elif outcome.is_healthy() and before[name] in (SourceStatus.DEGRADED, SourceStatus.UNAVAILABLE):
                self._recovered(name)
            results[name] = outcome
        return results

    def get_all_health(self) -> dict[str, SourceHealth]:
        return {name: source.get_health() for name, source in self._sources.items()}

    # =========================================================
    # INCIDENTS
    # =========================================================

    def on_incident(self, callback: IncidentCallback) -> None:
        self._incident_callbacks.append(callback)

    def on_recovery(self, callback: RecoveryCallback) -> None:
        self._recovery_callbacks.append(callback)

    def _record_incident(
        self,
        provider: str,
        incident_type: str,
        message: str,
        request: Optional[FetchRequest] = None,
    ) -> None:
        incident = SourceIncident(
            source_name=provider,
            incident_type=incident_type,
            timestamp=now_utc(),
            error_message=message,
            request_params=request.describe() if request else None,
        )
        self._incidents.append(incident)
        del self._incidents[:-self._max_incidents]
        self._notify(self._incident_callbacks, incident)

    def _recovered(self, provider: str) -> None:
        logger.info(f"[{provider}] Recovered")
        self._record_incident(provider, "recovery", "Source recovered to healthy status")
        self._notify(self._recovery_callbacks, provider)

    @staticmethod
    def _notify(callbacks: list, payload: Any) -> None:
        # A broken subscriber must not break fetching
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Callback {callback!r} failed: {e}")

    def get_incidents(self, limit: int = 100, provider: Optional[str] = None) -> list[SourceIncident]:
        incidents = self._incidents
        if provider is not None:
            incidents = [i for i in incidents if i.source_name == provider]
        return incidents[-limit:]

    def get_stats(self) -> dict[str, Any]:
        health = self.get_all_health()
        return {
            "total_sources": len(self._sources),
            "source_order": self.list_sources(),
            "health_summary": {
                status.value: sum(1 for h in health.values() if h.status == status)
                for status in SourceStatus
            },
            "total_incidents": len(self._incidents),
            "sources": {
                name: {
                    "status": health[name].status.value,
                    "is_usable": source.is_usable(),
                    "priority": self._priorities[name],
                    "latency_ms": health[name].latency_ms,
                    "last_error": health[name].last_error,
                }
                for name, source in self._sources.items()
            },
        }

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def close(self) -> None:
        """Close every provider's HTTP session."""
        await asyncio.gather(
            *(source.close() for source in self._sources.values()),
            return_exceptions=True,
        )
        self._sources.clear()
        self._priorities.clear()

    async def __aenter__(self) -> "SourceRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


_default_registry: Optional[SourceRegistry] = None


def get_default_registry() -> SourceRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = SourceRegistry()
    return _default_registry


def setup_default_sources(registry: Optional[SourceRegistry] = None) -> SourceRegistry:
    """Register StockX and Alias with credentials from the environment."""
    from data_sources.providers.alias import AliasMarketSource
    from data_sources.providers.stockx import StockXMarketSource

    registry = registry or get_default_registry()
    registry.register(StockXMarketSource())
    registry.register(AliasMarketSource())
    return registry

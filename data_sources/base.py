"""
Base Marketplace Data Source.

Shared HTTP plumbing for the StockX and Alias clients:
authenticated GETs over one aiohttp session, retry of gateway
errors, bounded waits on 429, and a health record that the
sync services and the registry read before calling out.

============================================================
HEALTH RULES
============================================================
- 3 consecutive failures: DEGRADED (still used)
- 5 consecutive failures: UNAVAILABLE (skipped by registry)
- 401/403: UNAVAILABLE at once; the token must be replaced
- 404: incident only; unknown products are not outages
- any success: HEALTHY, failure streak reset
============================================================
"""

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from core.clock import now_utc
from data_sources.exceptions import (
    AUTH_STATUS_CODES,
    AuthenticationError,
    DataSourceError,
    FetchError,
    RateLimitError,
)
from data_sources.models import (
    FetchRequest,
    NormalizedRecord,
    SourceHealth,
    SourceIncident,
    SourceMetadata,
    SourceStatus,
)


logger = logging.getLogger(__name__)

USER_AGENT = "SneakerPortfolioTracker/1.0"


class BaseMarketDataSource(ABC):
    """
    A marketplace API client.

    Subclasses provide name, metadata(), _auth_headers(), and
    map a FetchRequest (catalog search, product, variants,
    market data, recent sales) to GETs in fetch_raw() and to
    MarketRow / SaleRecord / CatalogRecord objects in
    normalize().
    """

    BASE_URL: str = ""
    # Env var named in AuthenticationError
    CREDENTIAL_ENV: Optional[str] = None
    # Cheapest authenticated call: (path, params)
    HEALTH_PROBE: tuple[str, dict[str, Any]] = ("", {})

    DEFAULT_TIMEOUT = 30.0
    MAX_RETRIES = 5
    RETRY_BACKOFF_BASE = 1.0  # seconds
    RETRY_MAX_DELAY = 16.0  # seconds
    RETRY_JITTER_FACTOR = 0.2
    MAX_RATE_LIMIT_WAIT = 30.0  # seconds
    MAX_RATE_LIMIT_WAITS = 5
    DEGRADED_THRESHOLD = 3
    UNAVAILABLE_THRESHOLD = 5
    MAX_INCIDENTS = 100

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self._timeout = timeout
        self._max_retries = max_retries
        self._session = session
        self._owns_session = session is None
        self._base_url = (base_url or self.BASE_URL).rstrip("/")

        self._health = SourceHealth(status=SourceStatus.UNKNOWN, last_check=now_utc())
        self._calls = 0
        self._successes = 0
        self._incidents: list[SourceIncident] = []

    # ------------------------------------------------------------
    # Provider contract
    # ------------------------------------------------------------

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider value ("stockx" / "alias")."""

    @abstractmethod
    def metadata(self) -> SourceMetadata:
        pass

    @abstractmethod
    def _auth_headers(self) -> dict[str, str]:
        """
        Headers for an authenticated call.

        Raises:
            ConfigurationError: If a credential is not configured
        """

    @abstractmethod
    async def fetch_raw(self, request: FetchRequest) -> list[dict[str, Any]]:
        """
        Call the provider for one request.

        Raises:
            FetchError: If a call fails
        """

    @abstractmethod
    def normalize(
        self,
        raw_data: list[dict[str, Any]],
        request: FetchRequest,
    ) -> list[NormalizedRecord]:
        """
        Raises:
            NormalizationError: If a payload cannot be mapped
        """

    # ------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------

    async def fetch(self, request: FetchRequest) -> list[NormalizedRecord]:
        """
        Fetch and normalize; failures return [].

        The failure is still recorded as an incident. Sync
        services call fetch_or_raise() to report the error.
        """
        try:
            return await self.fetch_or_raise(request)
        except DataSourceError:
            return []

    async def fetch_or_raise(self, request: FetchRequest) -> list[NormalizedRecord]:
        """
        Fetch and normalize, tracking health.

        Raises:
            DataSourceError: Any failure, already recorded as an incident
        """
        try:
            request.validate()
            if not self.metadata().supports(request.data_type):
                raise DataSourceError(
                    message=f"Unsupported data type: {request.data_type.value}",
                    source_name=self.name,
                )

            raw_data = await self._fetch_with_retry(request)
            records = self.normalize(raw_data, request) if raw_data else []
            if not raw_data:
                logger.info(f"[{self.name}] Nothing returned for {request.describe()}")
            self._record_success()
            return records

        except DataSourceError as e:
            self._record_failure(e, request)
            raise
        except Exception as e:
            error = DataSourceError(
                message=f"Unexpected error: {e}",
                source_name=self.name,
                original_error=e,
            )
            self._record_failure(error, request)
            raise error from e

    def get_retry_delay(self, attempt: int, jitter: bool = True) -> float:
        """1s, 2s, 4s ... capped at RETRY_MAX_DELAY, +/-20% jitter."""
        delay = min(self.RETRY_BACKOFF_BASE * (2 ** attempt), self.RETRY_MAX_DELAY)
        if jitter:
            delay += delay * self.RETRY_JITTER_FACTOR * random.uniform(-1, 1)
        return max(delay, 0.0)

    async def _fetch_with_retry(self, request: FetchRequest) -> list[dict[str, Any]]:
        """
        Retry gateway and connection errors.

        A 429 waits (Retry-After, else a long backoff) without
        using up an attempt; at most MAX_RATE_LIMIT_WAITS times.
        """
        last_error: Optional[FetchError] = None
        attempt = 0
        throttled = 0

        while attempt < self._max_retries:
            try:
                return await self.fetch_raw(request)

            except RateLimitError as e:
                self._health.rate_limited_count += 1
                throttled += 1
                last_error = e
                if throttled > self.MAX_RATE_LIMIT_WAITS:
                    break
                wait = e.retry_after_seconds
                if wait is None:
                    wait = self.get_retry_delay(throttled, jitter=False) * 5
                wait = min(wait, self.MAX_RATE_LIMIT_WAIT)
                logger.warning(
                    f"[{self.name}] 429 on {request.describe()}, waiting {wait:.1f}s "
                    f"({throttled}/{self.MAX_RATE_LIMIT_WAITS})"
                )
                await asyncio.sleep(wait)

            except FetchError as e:
                if not e.is_retryable():
                    raise
                last_error = e
                attempt += 1
                if attempt >= self._max_retries:
                    break
                wait = self.get_retry_delay(attempt - 1)
                logger.warning(
                    f"[{self.name}] {e.message}, retrying in {wait:.1f}s "
                    f"(attempt {attempt}/{self._max_retries})"
                )
                await asyncio.sleep(wait)

        if isinstance(last_error, RateLimitError):
            raise RateLimitError(
                message=f"Rate limit exhausted after {self.MAX_RATE_LIMIT_WAITS} waits",
                source_name=self.name,
                retry_after_seconds=last_error.retry_after_seconds,
                request_url=last_error.request_url,
                original_error=last_error,
            )
        raise FetchError(
            message=f"Failed after {self._max_retries} retries",
            source_name=self.name,
            status_code=last_error.status_code if last_error else None,
            original_error=last_error,
        )

    # ------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            )
            self._owns_session = True
        return self._session

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Authenticated GET on BASE_URL; None-valued params are dropped."""
        return await self._make_request(
            "GET",
            f"{self._base_url}{path}",
            params={k: v for k, v in (params or {}).items() if v is not None},
            headers=self._auth_headers(),
        )

    async def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        One HTTP call mapped onto the exception hierarchy.

        429 -> RateLimitError, 401/403 -> AuthenticationError,
        other >= 400 -> FetchError with the body, transport
        failures -> FetchError without a status.
        """
        session = await self._get_session()
        started = time.monotonic()
        try:
            async with session.request(method, url, params=params, headers=headers) as response:
                status = response.status

                if status == 429:
                    retry_after = response.headers.get("Retry-After", "")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        source_name=self.name,
                        retry_after_seconds=int(retry_after) if retry_after.isdigit() else None,
                    )
                if status in AUTH_STATUS_CODES:
                    raise AuthenticationError(
                        message=f"HTTP {status}: check {self.CREDENTIAL_ENV or 'credentials'}",
                        source_name=self.name,
                        status_code=status,
                        credential_key=self.CREDENTIAL_ENV,
                        request_url=url,
                    )
                if status >= 400:
                    body = await response.text()
                    raise FetchError(
                        message=f"HTTP {status}",
                        source_name=self.name,
                        status_code=status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(
                message=f"Connection error: {e}",
                source_name=self.name,
                request_url=url,
                original_error=e,
            ) from e

        self._health.latency_ms = (time.monotonic() - started) * 1000
        logger.debug(f"[{self.name}] {method} {url} {self._health.latency_ms:.0f}ms")
        return payload

    # ------------------------------------------------------------
    # Health
    # ------------------------------------------------------------

    async def health_check(self) -> SourceHealth:
        """Run HEALTH_PROBE; any failure marks the source UNAVAILABLE."""
        path, params = self.HEALTH_PROBE
        self._health.last_check = now_utc()
        try:
            await self._get(path, params)
        except DataSourceError as e:
            self._health.status = SourceStatus.UNAVAILABLE
            self._health.last_error = str(e)
            self._health.last_error_time = now_utc()
            logger.warning(f"[{self.name}] Health check failed: {e}")
        else:
            self._health.status = SourceStatus.HEALTHY
            logger.debug(f"[{self.name}] Health check ok")
        return self._health

    def _record_success(self) -> None:
        self._calls += 1
        self._successes += 1
        self._health.consecutive_failures = 0
        if self._health.status != SourceStatus.HEALTHY:
            logger.info(f"[{self.name}] {self._health.status.value} -> healthy")
            self._health.status = SourceStatus.HEALTHY

    def _record_failure(self, error: DataSourceError, request: Optional[FetchRequest] = None) -> None:
        self._calls += 1
        self._log_incident(error, request)
        if isinstance(error, FetchError) and error.is_not_found():
            return

        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = now_utc()

        streak = self._health.consecutive_failures
        if isinstance(error, AuthenticationError) or streak >= self.UNAVAILABLE_THRESHOLD:
            status = SourceStatus.UNAVAILABLE
        elif streak >= self.DEGRADED_THRESHOLD:
            status = SourceStatus.DEGRADED
        else:
            return

        if self._health.status != status:
            self._health.status = status
            log = logger.error if status == SourceStatus.UNAVAILABLE else logger.warning
            log(f"[{self.name}] Marked {status.value} after {streak} failure(s): {error.message}")

    def _log_incident(self, error: DataSourceError, request: Optional[FetchRequest] = None) -> None:
        self._incidents.append(SourceIncident(
            source_name=self.name,
            incident_type=error.__class__.__name__,
            timestamp=now_utc(),
            error_message=str(error),
            request_params=request.describe() if request else None,
        ))
        del self._incidents[:-self.MAX_INCIDENTS]
        logger.warning(f"[{self.name}] Incident: {error}")

    def get_health(self) -> SourceHealth:
        if self._calls:
            self._health.uptime_percentage = self._successes / self._calls * 100
        return self._health

    def get_incidents(self, limit: int = 10) -> list[SourceIncident]:
        """Most recent incidents, oldest first."""
        return self._incidents[-limit:]

    def is_healthy(self) -> bool:
        return self._health.status == SourceStatus.HEALTHY

    def is_usable(self) -> bool:
        """Anything but UNAVAILABLE."""
        return self._health.is_usable()

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    async def close(self) -> None:
        """Close the aiohttp session if this source created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseMarketDataSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self._health.status.value})>"

"""
Data Source Exceptions.

Errors raised by the StockX and Alias clients. Every error
carries the provider name and serializes for incident logs;
HTTP failures keep the status code so callers can tell a
missing product from an expired token or a throttled call.

    DataSourceError
    ├── FetchError              HTTP status or transport failure
    │   ├── RateLimitError      429
    │   └── AuthenticationError 401/403
    ├── NormalizationError      payload could not be mapped
    └── ConfigurationError      credential or flag missing
"""

from typing import Any, Optional

from core.clock import now_utc


# Gateway errors that StockX and Alias return under load
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})
AUTH_STATUS_CODES = frozenset({401, 403})


class DataSourceError(Exception):
    """Base exception for all data source errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        *,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = now_utc()

    def details(self) -> dict[str, Any]:
        """Subclass-specific fields for to_dict()."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "source_name": self.source_name,
            "message": self.message,
            "original_error": repr(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            **self.details(),
        }

    def __str__(self) -> str:
        text = f"{type(self).__name__}: {self.message}"
        if self.source_name:
            text += f" [source={self.source_name}]"
        if self.original_error:
            text += f" (caused by: {self.original_error})"
        return text


class FetchError(DataSourceError):
    """A provider call failed. status_code is None for transport errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, source_name, **kwargs)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    def details(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "request_url": self.request_url,
            "response_body": self.response_body,
        }

    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    def is_not_found(self) -> bool:
        """Unknown product, variant or catalog id."""
        return self.status_code == 404

    def is_auth_error(self) -> bool:
        return self.status_code in AUTH_STATUS_CODES

    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    def is_retryable(self) -> bool:
        """Gateway errors and connection failures (no status) are retried."""
        return self.status_code is None or self.status_code in RETRYABLE_STATUS_CODES


class RateLimitError(FetchError):
    """HTTP 429. Retry-After, when sent, is kept in seconds."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        *,
        retry_after_seconds: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, source_name, status_code=429, **kwargs)
        self.retry_after_seconds = retry_after_seconds

    def details(self) -> dict[str, Any]:
        return {**super().details(), "retry_after_seconds": self.retry_after_seconds}


class AuthenticationError(FetchError):
    """
    HTTP 401/403.

    StockX access tokens expire after a few hours and Alias
    tokens can be revoked; neither is fixed by retrying.
    """

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        *,
        status_code: int = 401,
        credential_key: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, source_name, status_code=status_code, **kwargs)
        self.credential_key = credential_key

    def details(self) -> dict[str, Any]:
        return {**super().details(), "credential_key": self.credential_key}


class NormalizationError(DataSourceError):
    """A provider payload could not be mapped to rows or records."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        *,
        raw_data: Optional[Any] = None,
        field_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, source_name, **kwargs)
        self.raw_data = raw_data
        self.field_name = field_name

    def details(self) -> dict[str, Any]:
        # Payload excerpts only; full responses can be large
        return {
            "field_name": self.field_name,
            "raw_data": str(self.raw_data)[:500] if self.raw_data else None,
        }


class ConfigurationError(DataSourceError):
    """A credential (STOCKX_*, ALIAS_PAT) or feature flag is missing."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        *,
        config_key: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, source_name, **kwargs)
        self.config_key = config_key

    def details(self) -> dict[str, Any]:
        return {"config_key": self.config_key}

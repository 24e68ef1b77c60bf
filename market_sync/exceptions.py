"""
Market Sync - Exceptions.
"""

from typing import Any, Dict, Optional


class SyncError(Exception):
    """
    Raised when a sync job cannot run at all.

    Examples: the SKU is not in the catalog, or Alias has no
    catalog id mapped for it. Failures inside a running sync
    are recorded on the SyncResult instead.
    """

    def __init__(
        self,
        message: str,
        sku: Optional[str] = None,
        provider: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.sku = sku
        self.provider = provider
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "sku": self.sku,
            "provider": self.provider,
            "context": self.context,
        }


class QueueError(SyncError):
    """Raised for invalid queue operations (unknown provider, bad state)."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        sku: Optional[str] = None,
        provider: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, sku=sku, provider=provider, context=context)
        self.job_id = job_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["job_id"] = self.job_id
        return data

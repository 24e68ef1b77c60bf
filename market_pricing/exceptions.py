"""
Market Pricing - Exceptions.
"""

from typing import Any, Dict, Optional


class PricingError(Exception):
    """
    Raised for invalid pricing input.

    Examples: a non-positive gross price, an unsupported
    currency, or an unknown platform.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }

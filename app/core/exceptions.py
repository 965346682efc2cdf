"""
Domain Exceptions

    OrderFoodError
    ├── ValidationError    bad order input, rejected before any transaction
    ├── AllocationError    daily counter unreadable/unwritable, transaction aborted
    ├── PersistenceError   order or line insert failed, transaction aborted
    └── PrintError         device fault, recorded on the order, never surfaced
"""

from typing import Optional


class OrderFoodError(Exception):
    """Base class for kiosk domain errors."""

    status_code: int = 500

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(OrderFoodError):
    """Order input rejected; nothing was written."""

    status_code = 400


class AllocationError(OrderFoodError):
    """Daily sequence could not be allocated."""


class PersistenceError(OrderFoodError):
    """Order rows could not be written."""


class PrintError(OrderFoodError):
    """Receipt could not be printed."""

"""
Core module initialization.
Exports configuration, logging utilities and domain exceptions.
"""

from app.core.config import (
    get_settings,
    get_printer_settings,
    Settings,
    PrinterSettings,
    EnvironmentMode,
)
from app.core.exceptions import (
    OrderFoodError,
    ValidationError,
    AllocationError,
    PersistenceError,
    PrintError,
)

__all__ = [
    "get_settings",
    "get_printer_settings",
    "Settings",
    "PrinterSettings",
    "EnvironmentMode",
    "OrderFoodError",
    "ValidationError",
    "AllocationError",
    "PersistenceError",
    "PrintError",
]

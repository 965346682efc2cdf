"""
Printing Service Factory

Returns the print driver adapter for the configured device.

Environment Switching:
    - PRINTER_ENABLED=false     → adapter without device (simulated results)
    - PRINTER_DRIVER=native     → vendor DLL through ctypes
    - PRINTER_DRIVER=escpos     → python-escpos
    - PRINTER_DRIVER=simulated  → in-memory device

The adapter is cached so one printer handle exists per process.
"""

import logging
from functools import lru_cache
from typing import Optional

from app.core.config import PrinterDriver, PrinterSettings, get_printer_settings
from app.services.printing.base import (
    Alignment,
    BasePrinterDevice,
    Cut,
    DeviceInfo,
    LineFeed,
    MultiLineFeed,
    PrinterStatus,
    PrintJob,
    PrintResult,
    TextRun,
    TextStyle,
)
from app.services.printing.adapter import PrintDriverAdapter
from app.services.printing.simulated import SimulatedPrinterDevice

logger = logging.getLogger(__name__)


def build_printer_device(config: PrinterSettings) -> Optional[BasePrinterDevice]:
    """Instantiate the device named by the configuration."""
    if not config.enabled:
        logger.info("Printing disabled (PRINTER_ENABLED=false)")
        return None

    if config.driver == PrinterDriver.SIMULATED:
        return SimulatedPrinterDevice()

    if config.driver == PrinterDriver.ESCPOS:
        from app.services.printing.escpos_device import EscposPrinterDevice
        return EscposPrinterDevice(config)

    from app.services.printing.native import NativePrinterDevice
    return NativePrinterDevice(config)


@lru_cache()
def get_print_adapter() -> PrintDriverAdapter:
    """Get the process-wide print driver adapter."""
    config = get_printer_settings()
    device = build_printer_device(config)
    adapter = PrintDriverAdapter(device, config)
    logger.info(
        f"Print Service: {adapter.provider_name} "
        f"(driver loaded: {adapter.driver_loaded}, status checks: {config.check_status})"
    )
    return adapter


def reset_print_adapter() -> None:
    """Close the cached adapter's port and clear the cache."""
    if get_print_adapter.cache_info().currsize:
        get_print_adapter().close_port()
    get_print_adapter.cache_clear()


__all__ = [
    "get_print_adapter",
    "reset_print_adapter",
    "build_printer_device",
    "PrintDriverAdapter",
    "BasePrinterDevice",
    "SimulatedPrinterDevice",
    "Alignment",
    "TextStyle",
    "PrinterStatus",
    "TextRun",
    "LineFeed",
    "MultiLineFeed",
    "Cut",
    "PrintJob",
    "PrintResult",
    "DeviceInfo",
]

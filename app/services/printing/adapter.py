"""
Print Driver Adapter

Runs a PrintJob against one printer device and reports a PrintResult.

Port lifecycle:

    Closed ──open_port()──▶ Open ──close_port()──▶ Closed
       ▲                     │
       └── open failure ─────┘   (execute() reopens lazily)

Nothing raised by the device escapes execute(): every fault becomes
PrintResult(success=False). The adapter holds a single handle; a lock keeps
status probes from interleaving with a running job.
"""

import logging
import threading
import time
from typing import Callable, Optional

from app.core.config import PrinterSettings
from app.core.exceptions import PrintError
from app.services.printing.base import (
    BasePrinterDevice,
    Cut,
    DeviceInfo,
    LineFeed,
    MultiLineFeed,
    PrinterStatus,
    PrintJob,
    PrintResult,
    TextRun,
)

logger = logging.getLogger(__name__)

OPEN_FAILED_MESSAGE = "Cannot open the printer, please check the printer connection"

_BLOCKING_FAULTS = {
    PrinterStatus.PAPER_OUT: "Printer is out of paper, please load paper and retry",
    PrinterStatus.OFFLINE: "Printer is offline, please check the printer connection",
    PrinterStatus.COVER_OPEN: "Printer cover is open, please close it and retry",
}


class PrintDriverAdapter:
    """
    Executes print jobs on a single printer device.

    Args:
        device: Printer implementation, or None when printing is disabled
        config: Printer settings (status probing, timeouts)
        sleep: Delay function used before the post-print probe
    """

    def __init__(
        self,
        device: Optional[BasePrinterDevice],
        config: PrinterSettings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.device = device
        self.config = config
        self._sleep = sleep
        self._port_open = False
        self._lock = threading.RLock()
        self.last_status: Optional[PrinterStatus] = None

    @property
    def provider_name(self) -> str:
        return self.device.provider_name if self.device else "disabled"

    @property
    def is_open(self) -> bool:
        return self._port_open

    @property
    def driver_loaded(self) -> bool:
        return self.device is not None and self.device.available

    # =========================================================================
    # PORT LIFECYCLE
    # =========================================================================

    def open_port(self) -> PrintResult:
        """Acquire and bind the printer handle (Closed -> Open)."""
        with self._lock:
            return self._open_port()

    def _open_port(self) -> PrintResult:
        if not self.driver_loaded:
            return PrintResult(success=False, message="Printer driver not loaded")

        if self._port_open:
            self.close_port()

        try:
            if not self.device.open():
                return PrintResult(success=False, message=OPEN_FAILED_MESSAGE)
            if not self.device.set_port():
                self.device.close()
                return PrintResult(success=False, message="Printer port could not be bound")
        except Exception as e:
            logger.error(
                f"Opening printer port failed ({self.config.port_type.value}:"
                f"{self.config.port_name}): {e}"
            )
            self._safe_device_close()
            return PrintResult(success=False, message=f"{OPEN_FAILED_MESSAGE} ({e})")

        self._port_open = True
        logger.info(
            f"Printer port open: {self.config.port_type.value}:{self.config.port_name} "
            f"via {self.provider_name}"
        )
        return PrintResult(success=True, message="Printer port open")

    def close_port(self) -> bool:
        """Release the handle (Open -> Closed)."""
        with self._lock:
            if not self._port_open:
                return False
            self._port_open = False
            return self._safe_device_close()

    def _safe_device_close(self) -> bool:
        try:
            self.device.close()
            return True
        except Exception as e:
            logger.error(f"Closing printer port failed: {e}")
            return False

    # =========================================================================
    # STATUS
    # =========================================================================

    def probe(self) -> PrinterStatus:
        """Query the device; any error counts as a failed query."""
        try:
            code = self.device.query_status(self.config.status_timeout_ms)
            status = PrinterStatus.from_code(code)
        except Exception as e:
            logger.debug(f"Printer status query failed: {e}")
            status = PrinterStatus.QUERY_FAILED
        self.last_status = status
        logger.debug(f"Printer status: {status.description} ({int(status)})")
        return status

    def info(self) -> DeviceInfo:
        """Snapshot for the status endpoint; probes only when the port is open."""
        status = None
        with self._lock:
            if self.driver_loaded and self._port_open:
                status = self.probe()
        return DeviceInfo(
            provider=self.provider_name,
            available=self.driver_loaded,
            port_open=self._port_open,
            status=status,
            details={
                "port_type": self.config.port_type.value,
                "port_name": self.config.port_name,
                "check_status": self.config.check_status,
                "text_encoding": int(self.config.text_encoding),
            },
        )

    def initialize(self) -> PrintResult:
        """Open the port, reset the printer and print the self-test page."""
        if not self.driver_loaded:
            logger.warning("Printer driver not loaded, skipping initialization")
            return PrintResult(success=False, message="Printer driver not loaded")

        opened = self.open_port()
        if not opened.success:
            return opened

        try:
            if not self.device.reset():
                logger.warning("Printer reset failed, continuing")
            if self.device.self_test():
                logger.info("Printer self-test page printed")
            else:
                logger.warning("Printer self-test failed, continuing")
        except Exception as e:
            logger.error(f"Printer initialization failed: {e}")
            return PrintResult(success=False, message=f"Printer initialization failed: {e}")

        return PrintResult(success=True, message="Printer initialized")

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def execute(self, job: PrintJob) -> PrintResult:
        """
        Print one job.

        Returns:
            PrintResult: never raises
        """
        with self._lock:
            return self._execute(job)

    def _execute(self, job: PrintJob) -> PrintResult:
        if self.device is None:
            logger.debug(f"Printing disabled, receipt {job.reference} skipped")
            return PrintResult(
                success=True,
                message="Simulated print: printing is disabled",
                simulated=True,
            )

        if not self.device.available:
            logger.debug(f"Simulated receipt {job.reference} (driver not loaded)")
            return PrintResult(
                success=True,
                message="Simulated print: printer driver not loaded",
                simulated=True,
            )

        try:
            if not self._port_open:
                opened = self.open_port()
                if not opened.success:
                    return PrintResult(success=False, message=opened.message)

            if self.config.check_status:
                status = self.probe()
                if status in _BLOCKING_FAULTS:
                    logger.warning(
                        f"Receipt {job.reference} not sent: printer {status.description}"
                    )
                    return PrintResult(
                        success=False,
                        message=_BLOCKING_FAULTS[status],
                        status=status,
                    )

            self._dispatch(job)

            status = None
            if self.config.check_status:
                self._sleep(self.config.post_print_settle_seconds)
                status = self.probe()
                if status is PrinterStatus.PAPER_OUT:
                    logger.warning(f"Paper ran out while printing receipt {job.reference}")
                    return PrintResult(
                        success=False,
                        message="Print may be incomplete: printer ran out of paper, please check the receipt",
                        status=status,
                    )

            simulated = self.device.provider_name == "simulated"
            logger.info(f"Receipt {job.reference} printed via {self.provider_name}")
            return PrintResult(
                success=True,
                message="Printed on simulated device" if simulated else "Printed",
                simulated=simulated,
                status=status,
            )

        except Exception as e:
            logger.exception(f"Printing receipt {job.reference} failed")
            # The handle may be unusable now; the next job reopens it.
            self.close_port()
            return PrintResult(success=False, message=f"Print failed: {e}")

    def _dispatch(self, job: PrintJob) -> None:
        device = self.device
        for primitive in job.primitives:
            if isinstance(primitive, TextRun):
                device.align(primitive.align)
                if not device.print_text(primitive):
                    raise PrintError(f"Printer rejected text {primitive.text[:20]!r}")
            elif isinstance(primitive, LineFeed):
                device.feed()
            elif isinstance(primitive, MultiLineFeed):
                device.feed_lines(primitive.lines)
            elif isinstance(primitive, Cut):
                try:
                    device.cut()
                except Exception as e:
                    logger.debug(f"Cut skipped, printer may have no cutter: {e}")
            else:
                raise PrintError(f"Unknown print primitive: {primitive!r}")

"""
Simulated Printer Device

Stands in for the receipt printer on development machines and in tests.
Nothing is printed; every call is recorded so the exact primitive stream
can be inspected. Status codes and faults can be scripted.
"""

import logging
from collections import deque
from typing import Iterable, Optional

from app.services.printing.base import (
    Alignment,
    BasePrinterDevice,
    PrinterStatus,
    TextRun,
)

logger = logging.getLogger(__name__)


class SimulatedPrinterDevice(BasePrinterDevice):
    """
    In-memory printer.

    Args:
        statuses: Status codes returned by successive query_status calls;
            NORMAL once exhausted
        fail_open: open() returns False
        fail_cut: cut() raises, like a printer without a cutter
        fail_on_text: print_text raises when the text contains this marker
    """

    def __init__(
        self,
        statuses: Optional[Iterable[PrinterStatus]] = None,
        fail_open: bool = False,
        fail_cut: bool = False,
        fail_on_text: Optional[str] = None,
    ):
        self._statuses = deque(statuses or [])
        self.fail_open = fail_open
        self.fail_cut = fail_cut
        self.fail_on_text = fail_on_text

        self.calls: list[tuple] = []
        self.printed: list[TextRun] = []
        self.open_count = 0
        self.is_open = False
        logger.info("SimulatedPrinterDevice initialized")

    @property
    def provider_name(self) -> str:
        return "simulated"

    @property
    def available(self) -> bool:
        return True

    def queue_statuses(self, *statuses: PrinterStatus) -> None:
        self._statuses.extend(statuses)

    def open(self) -> bool:
        self.calls.append(("open",))
        if self.fail_open:
            return False
        self.open_count += 1
        self.is_open = True
        return True

    def set_port(self) -> bool:
        self.calls.append(("set_port",))
        return True

    def close(self) -> None:
        self.calls.append(("close",))
        self.is_open = False

    def reset(self) -> bool:
        self.calls.append(("reset",))
        return True

    def self_test(self) -> bool:
        self.calls.append(("self_test",))
        return True

    def align(self, alignment: Alignment) -> bool:
        self.calls.append(("align", alignment))
        return True

    def print_text(self, run: TextRun) -> bool:
        if self.fail_on_text and self.fail_on_text in run.text:
            raise OSError(f"Simulated write failure on {run.text!r}")
        self.calls.append(("text", run))
        self.printed.append(run)
        return True

    def feed(self) -> bool:
        self.calls.append(("feed",))
        return True

    def feed_lines(self, lines: int) -> bool:
        self.calls.append(("feed_lines", lines))
        return True

    def cut(self) -> bool:
        if self.fail_cut:
            raise OSError("Simulated printer has no cutter")
        self.calls.append(("cut",))
        return True

    def query_status(self, timeout_ms: int) -> int:
        self.calls.append(("query_status", timeout_ms))
        if self._statuses:
            return int(self._statuses.popleft())
        return int(PrinterStatus.NORMAL)

    def printed_lines(self) -> list[str]:
        return [run.text for run in self.printed]

"""
Printing Abstractions

Print primitives produced by the receipt renderer, the result types
returned by the driver adapter, and the device capability interface that
every printer implementation (vendor DLL, ESC/POS, simulated) provides.

Design Pattern: Strategy Pattern
    - PrintDriverAdapter talks only to BasePrinterDevice
    - The concrete device is chosen from configuration
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Union

from app.core.config import TextEncoding


# =============================================================================
# ENUMS
# =============================================================================

class Alignment(int, enum.Enum):
    LEFT = 0
    CENTER = 1
    RIGHT = 2


class TextStyle(enum.IntFlag):
    """Style bits understood by the printer driver."""
    NORMAL = 0x00
    BOLD = 0x08
    UNDERLINE = 0x80


class PrinterStatus(int, enum.Enum):
    """Error codes reported by the printer status query."""
    NORMAL = 1
    OFFLINE = -1
    COVER_OPEN = -2
    PAPER_OUT = -3
    CUTTER_FAULT = -4
    HEAD_OVERHEAT = -5
    QUERY_FAILED = -6

    @classmethod
    def from_code(cls, code: int) -> "PrinterStatus":
        """Map a raw driver code; anything unknown counts as a failed query."""
        try:
            return cls(code)
        except ValueError:
            return cls.QUERY_FAILED

    @property
    def description(self) -> str:
        return _STATUS_DESCRIPTIONS[self]


_STATUS_DESCRIPTIONS = {
    PrinterStatus.NORMAL: "normal",
    PrinterStatus.OFFLINE: "offline",
    PrinterStatus.COVER_OPEN: "cover open",
    PrinterStatus.PAPER_OUT: "out of paper",
    PrinterStatus.CUTTER_FAULT: "cutter fault",
    PrinterStatus.HEAD_OVERHEAT: "print head overheated",
    PrinterStatus.QUERY_FAILED: "status query failed",
}


# =============================================================================
# PRINT PRIMITIVES
# =============================================================================

@dataclass(frozen=True)
class TextRun:
    """
    One line segment of text.

    Alignment, scale and style are applied immediately before the text is
    sent; nothing is assumed to carry over from the previous run.
    """
    text: str
    encoding: TextEncoding
    align: Alignment = Alignment.LEFT
    width_scale: float = 1.0
    height_scale: float = 1.0
    font_type: int = 0
    style: TextStyle = TextStyle.NORMAL

    @property
    def bold(self) -> bool:
        return bool(self.style & TextStyle.BOLD)


@dataclass(frozen=True)
class LineFeed:
    pass


@dataclass(frozen=True)
class MultiLineFeed:
    lines: int


@dataclass(frozen=True)
class Cut:
    pass


PrintPrimitive = Union[TextRun, LineFeed, MultiLineFeed, Cut]


@dataclass(frozen=True)
class PrintJob:
    """Ordered primitives for one receipt. Built per order, never reused."""
    primitives: tuple[PrintPrimitive, ...]
    reference: str = ""

    def text_runs(self) -> list[TextRun]:
        return [p for p in self.primitives if isinstance(p, TextRun)]

    def lines(self) -> list[str]:
        """Plain-text preview: one string per printed line."""
        rendered: list[str] = []
        current = ""
        for primitive in self.primitives:
            if isinstance(primitive, TextRun):
                current += primitive.text
            elif isinstance(primitive, LineFeed):
                rendered.append(current)
                current = ""
            elif isinstance(primitive, MultiLineFeed):
                rendered.append(current)
                rendered.extend([""] * (primitive.lines - 1))
                current = ""
        if current:
            rendered.append(current)
        return rendered


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class PrintResult:
    """
    Outcome of one print attempt.

    Attributes:
        success: Whether the receipt is believed to be printed
        message: Human-readable outcome, stored on the order
        simulated: True when no real device was driven
        status: Last device status observed, if probed
    """
    success: bool
    message: str
    simulated: bool = False
    status: Optional[PrinterStatus] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "message": self.message,
            "simulated": self.simulated,
            "status": self.status.name.lower() if self.status else None,
        }


@dataclass
class DeviceInfo:
    """Snapshot for the status endpoint."""
    provider: str
    available: bool
    port_open: bool
    status: Optional[PrinterStatus] = None
    details: dict = field(default_factory=dict)


# =============================================================================
# DEVICE INTERFACE
# =============================================================================

class BasePrinterDevice(ABC):
    """
    Capability interface of a receipt printer.

    Methods return False on a device-level refusal and may raise on
    transport errors; the adapter converts both into a PrintResult.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the implementation name (e.g. "native", "simulated")."""
        pass

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether the underlying driver is loaded and usable."""
        pass

    @abstractmethod
    def open(self) -> bool:
        """Acquire a handle on the configured port."""
        pass

    @abstractmethod
    def set_port(self) -> bool:
        """Bind the acquired handle as the active printer."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the handle."""
        pass

    @abstractmethod
    def reset(self) -> bool:
        pass

    @abstractmethod
    def self_test(self) -> bool:
        pass

    @abstractmethod
    def align(self, alignment: Alignment) -> bool:
        pass

    @abstractmethod
    def print_text(self, run: TextRun) -> bool:
        pass

    @abstractmethod
    def feed(self) -> bool:
        pass

    @abstractmethod
    def feed_lines(self, lines: int) -> bool:
        pass

    @abstractmethod
    def cut(self) -> bool:
        pass

    @abstractmethod
    def query_status(self, timeout_ms: int) -> int:
        """Return the raw driver status code (see PrinterStatus)."""
        pass


def scale_multiplier(scale: float) -> int:
    """
    Convert a nominal scale to the driver's 1-based size multiplier.

    Scales below 1.0 print at normal size; 1.0 up to 2.0 print doubled.
    """
    return max(1, int(scale) + 1)

"""
ESC/POS Printer Device

Drives any ESC/POS thermal printer through python-escpos, for kiosks that
do not ship the vendor DLL. Transport follows the configured port type:

    COM -> escpos.printer.Serial      (port_name = /dev/ttyUSB0 or COM3)
    USB -> escpos.printer.Usb         (port_name = "0x28e9:0x0289")
    LPT -> escpos.printer.File        (port_name = /dev/usb/lp0)
    PRN -> escpos.printer.File
    TCP -> escpos.printer.Network     (port_name = host, tcp_port)
"""

import logging
from typing import Optional

from escpos import printer as escpos_printer

from app.core.config import PortType, PrinterSettings, TextEncoding
from app.core.exceptions import PrintError
from app.services.printing.base import (
    Alignment,
    BasePrinterDevice,
    PrinterStatus,
    TextRun,
    scale_multiplier,
)

logger = logging.getLogger(__name__)

_CODECS = {
    TextEncoding.GBK: "gbk",
    TextEncoding.UTF8: "utf-8",
    TextEncoding.BIG5: "big5",
}
_ALIGN_NAMES = {
    Alignment.LEFT: "left",
    Alignment.CENTER: "center",
    Alignment.RIGHT: "right",
}
_PARITY = {0: "N", 1: "O", 2: "E"}
_STOPBITS = {0: 1, 1: 1.5, 2: 2}

# FS & / FS . switch the printer in and out of double-byte character mode
_KANJI_ON = b"\x1c\x26"
_KANJI_OFF = b"\x1c\x2e"
# Written with Escpos._raw: python-escpos has no public call that sends
# pre-encoded bytes unchanged


def _parse_usb_ids(port_name: str) -> tuple[int, int]:
    try:
        vendor, product = port_name.split(":", 1)
        return int(vendor, 16), int(product, 16)
    except ValueError as e:
        raise PrintError(
            f"ESC/POS USB port name must be 'vendor:product' in hex, got {port_name!r}"
        ) from e


class EscposPrinterDevice(BasePrinterDevice):
    """Receipt printer driven with python-escpos."""

    def __init__(self, config: PrinterSettings):
        self.config = config
        self._printer = None
        self._backend = escpos_printer

    @property
    def provider_name(self) -> str:
        return "escpos"

    @property
    def available(self) -> bool:
        return True

    def _build_printer(self):
        cfg = self.config
        backend = self._backend
        if cfg.port_type == PortType.TCP:
            return backend.Network(cfg.port_name, port=cfg.tcp_port, timeout=10)
        if cfg.port_type == PortType.USB:
            vendor, product = _parse_usb_ids(cfg.port_name)
            return backend.Usb(vendor, product)
        if cfg.port_type == PortType.COM:
            return backend.Serial(
                devfile=cfg.port_name,
                baudrate=cfg.baudrate,
                bytesize=cfg.databits,
                parity=_PARITY.get(cfg.parity, "N"),
                stopbits=_STOPBITS.get(cfg.stopbits, 1),
                dsrdtr=bool(cfg.flowcontrol),
            )
        return backend.File(devfile=cfg.port_name)

    def open(self) -> bool:
        printer = self._build_printer()
        printer.open()
        self._printer = printer
        return True

    def set_port(self) -> bool:
        return self._printer is not None

    def close(self) -> None:
        if self._printer is not None:
            printer, self._printer = self._printer, None
            printer.close()

    def _require(self):
        if self._printer is None:
            raise PrintError("Printer port is not open")
        return self._printer

    def reset(self) -> bool:
        self._require().hw("INIT")
        return True

    def self_test(self) -> bool:
        printer = self._require()
        printer.set(align="center")
        printer.textln("ESC/POS SELF TEST")
        printer.ln(2)
        return True

    def align(self, alignment: Alignment) -> bool:
        self._require().set(align=_ALIGN_NAMES[alignment])
        return True

    def print_text(self, run: TextRun) -> bool:
        printer = self._require()
        width = scale_multiplier(run.width_scale)
        height = scale_multiplier(run.height_scale)
        printer.set(
            align=_ALIGN_NAMES[run.align],
            bold=run.bold,
            custom_size=True,
            width=width,
            height=height,
        )
        codec = _CODECS.get(run.encoding, "utf-8")
        payload = run.text.encode(codec, errors="replace")
        if run.encoding in (TextEncoding.GBK, TextEncoding.BIG5):
            payload = _KANJI_ON + payload + _KANJI_OFF
        printer._raw(payload)
        return True

    def feed(self) -> bool:
        self._require().ln(1)
        return True

    def feed_lines(self, lines: int) -> bool:
        self._require().ln(lines)
        return True

    def cut(self) -> bool:
        self._require().cut()
        return True

    def query_status(self, timeout_ms: int) -> int:
        printer: Optional[object] = self._printer
        if printer is None:
            return int(PrinterStatus.QUERY_FAILED)
        if not printer.is_online():
            return int(PrinterStatus.OFFLINE)
        if printer.paper_status() == 0:
            return int(PrinterStatus.PAPER_OUT)
        return int(PrinterStatus.NORMAL)

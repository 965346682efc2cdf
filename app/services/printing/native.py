"""
Native Printer Device

ctypes binding of the vendor printer library (CsnPrinterLibs). The library
owns the transport (COM/USB/LPT/PRN/TCP) and converts the UTF-16 text it
receives into the encoding selected per call.

If the library cannot be loaded the device reports itself unavailable and
the adapter falls back to simulated output.
"""

import ctypes
import logging
import sys
from pathlib import Path
from typing import Optional

from app.core.config import PortType, PrinterSettings
from app.core.exceptions import PrintError
from app.services.printing.base import (
    Alignment,
    BasePrinterDevice,
    PrinterStatus,
    TextRun,
    scale_multiplier,
)

logger = logging.getLogger(__name__)

# Pos_Text position argument: negative values select an alignment.
_POSITIONS = {
    Alignment.LEFT: -1,
    Alignment.CENTER: -2,
    Alignment.RIGHT: -3,
}

# name -> (restype, argtypes)
_SIGNATURES = {
    "Port_OpenCOMIO": (
        ctypes.c_void_p,
        [ctypes.c_char_p, ctypes.c_uint32, ctypes.c_int, ctypes.c_int, ctypes.c_int, ctypes.c_int],
    ),
    "Port_OpenUSBIO": (ctypes.c_void_p, [ctypes.c_char_p]),
    "Port_OpenLPTIO": (ctypes.c_void_p, [ctypes.c_char_p]),
    "Port_OpenPRNIO": (ctypes.c_void_p, [ctypes.c_char_p]),
    "Port_OpenTCPIO": (ctypes.c_void_p, [ctypes.c_char_p, ctypes.c_ushort]),
    "Port_SetPort": (ctypes.c_bool, [ctypes.c_void_p]),
    "Port_ClosePort": (None, [ctypes.c_void_p]),
    "Pos_Reset": (ctypes.c_bool, []),
    "Pos_SelfTest": (ctypes.c_bool, []),
    "Pos_FeedLine": (ctypes.c_bool, []),
    "Pos_Feed_N_Line": (ctypes.c_bool, [ctypes.c_int]),
    "Pos_Align": (ctypes.c_bool, [ctypes.c_int]),
    "Pos_Text": (
        ctypes.c_bool,
        [ctypes.c_wchar_p, ctypes.c_int, ctypes.c_int, ctypes.c_int, ctypes.c_int, ctypes.c_int, ctypes.c_int],
    ),
    "Pos_FullCutPaper": (ctypes.c_bool, []),
    "Pos_HalfCutPaper": (ctypes.c_bool, []),
    "Pos_QueryPrinterErr": (ctypes.c_int, [ctypes.c_ulong]),
}


def load_printer_library(dll_path: str) -> ctypes.CDLL:
    """
    Load the vendor library and declare its function signatures.

    Raises:
        OSError: The library file is missing or cannot be loaded
        AttributeError: An expected export is missing
    """
    path = Path(dll_path)
    if not path.is_absolute() and not path.exists():
        # Packaged kiosks ship the DLL beside the executable
        candidate = Path(sys.argv[0]).resolve().parent / path
        if candidate.exists():
            path = candidate

    library = ctypes.CDLL(str(path))
    for name, (restype, argtypes) in _SIGNATURES.items():
        function = getattr(library, name)
        function.restype = restype
        function.argtypes = argtypes
    return library


class NativePrinterDevice(BasePrinterDevice):
    """Receipt printer driven through the vendor DLL."""

    def __init__(self, config: PrinterSettings, library: Optional[ctypes.CDLL] = None):
        self.config = config
        self._handle: Optional[int] = None
        self._library = library

        if self._library is None:
            try:
                self._library = load_printer_library(config.dll_path)
                logger.info(f"Printer library loaded from {config.dll_path}")
            except (OSError, AttributeError) as e:
                self._library = None
                logger.warning(
                    f"Printer library unavailable ({e}); receipts will be simulated"
                )

    @property
    def provider_name(self) -> str:
        return "native"

    @property
    def available(self) -> bool:
        return self._library is not None

    def open(self) -> bool:
        lib = self._library
        port_name = (self.config.port_name or "").encode("utf-8")
        port_type = self.config.port_type

        if port_type == PortType.COM:
            handle = lib.Port_OpenCOMIO(
                port_name,
                self.config.baudrate,
                self.config.flowcontrol,
                self.config.parity,
                self.config.databits,
                self.config.stopbits,
            )
        elif port_type == PortType.USB:
            if not port_name:
                raise PrintError("USB port type requires a port name such as USB001")
            handle = lib.Port_OpenUSBIO(port_name)
        elif port_type == PortType.LPT:
            handle = lib.Port_OpenLPTIO(port_name)
        elif port_type == PortType.PRN:
            handle = lib.Port_OpenPRNIO(port_name)
        elif port_type == PortType.TCP:
            handle = lib.Port_OpenTCPIO(port_name, self.config.tcp_port)
        else:
            raise PrintError(f"Unsupported port type: {port_type}")

        if not handle:
            logger.error(
                f"Could not open {port_type.value}:{self.config.port_name}; "
                "check the cable, power and driver installation"
            )
            return False

        self._handle = handle
        return True

    def set_port(self) -> bool:
        if not self._handle:
            return False
        return bool(self._library.Port_SetPort(self._handle))

    def close(self) -> None:
        if self._handle:
            handle, self._handle = self._handle, None
            self._library.Port_ClosePort(handle)

    def reset(self) -> bool:
        return bool(self._library.Pos_Reset())

    def self_test(self) -> bool:
        return bool(self._library.Pos_SelfTest())

    def align(self, alignment: Alignment) -> bool:
        return bool(self._library.Pos_Align(int(alignment)))

    def print_text(self, run: TextRun) -> bool:
        # The DLL takes 0-based size multipliers
        return bool(
            self._library.Pos_Text(
                run.text,
                int(run.encoding),
                _POSITIONS[run.align],
                scale_multiplier(run.width_scale) - 1,
                scale_multiplier(run.height_scale) - 1,
                run.font_type,
                int(run.style),
            )
        )

    def feed(self) -> bool:
        return bool(self._library.Pos_FeedLine())

    def feed_lines(self, lines: int) -> bool:
        return bool(self._library.Pos_Feed_N_Line(lines))

    def cut(self) -> bool:
        return bool(self._library.Pos_FullCutPaper())

    def query_status(self, timeout_ms: int) -> int:
        if not self._handle:
            return int(PrinterStatus.QUERY_FAILED)
        return int(self._library.Pos_QueryPrinterErr(timeout_ms))

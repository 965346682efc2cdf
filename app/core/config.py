"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Two settings objects are exposed:

    - Settings: application, database, background dispatch and logging
    - PrinterSettings: receipt printer transport and behaviour

Printer settings are resolved in this order (first wins):
    1. PRINTER_* environment variables
    2. .env file
    3. printer.config.json (path overridable with PRINTER_CONFIG_FILE)
    4. Built-in defaults

Usage:
    from app.core.config import get_settings, get_printer_settings

    settings = get_settings()
    printer = get_printer_settings()
    if printer.enabled:
        ...

Version: 1.0.0
"""

import os
import logging
import logging.handlers
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local kiosk testing, simulation endpoints enabled
        PRODUCTION: Live kiosk
        STAGING: Pre-production box
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class PrintDispatchMode(str, Enum):
    """
    How post-commit print work is handed off.

    Attributes:
        LOCAL: In-process asyncio queue with a single consumer
        CELERY: Celery task on a single-process worker
    """
    LOCAL = "local"
    CELERY = "celery"


class PrinterDriver(str, Enum):
    """Which device implementation drives the receipt printer."""
    NATIVE = "native"
    ESCPOS = "escpos"
    SIMULATED = "simulated"


class PortType(str, Enum):
    """Printer transport types understood by the device layer."""
    COM = "COM"
    USB = "USB"
    LPT = "LPT"
    PRN = "PRN"
    TCP = "TCP"


class TextEncoding(int, Enum):
    """Encoding selectors understood by the printer driver."""
    GBK = 0
    UTF8 = 1
    BIG5 = 3


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details

        # Database
        database_url: SQLAlchemy async connection string

        # Background printing
        print_dispatch: local queue or celery worker
        redis_url: Redis connection string for Celery

        # Store defaults
        default_store_id: Store id used when a request omits it
        currency_symbol: Marker printed before every amount
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Self-Service Ordering Kiosk",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=3001,
        description="API server port"
    )

    # ==========================================================================
    # DATABASE
    # ==========================================================================

    database_url: str = Field(
        default="sqlite+aiosqlite:///./orderfood.db",
        description="SQLAlchemy async URL (sqlite+aiosqlite or postgresql+psycopg)"
    )
    database_echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )

    # ==========================================================================
    # BACKGROUND PRINTING
    # ==========================================================================

    print_dispatch: PrintDispatchMode = Field(
        default=PrintDispatchMode.LOCAL,
        description="Where post-commit print jobs run"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (celery dispatch only)"
    )

    # ==========================================================================
    # STORE DEFAULTS
    # ==========================================================================

    default_store_id: int = Field(
        default=1,
        description="Store id used when the request does not carry one"
    )
    currency_symbol: str = Field(
        default="HK$",
        description="Currency marker printed before amounts"
    )

    # ==========================================================================
    # LOGGING
    # ==========================================================================

    printer_log_file: Optional[str] = Field(
        default="printer.log",
        description="Rotating log file for the printing subsystem (empty disables)"
    )
    printer_log_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Rotate the printer log after this many bytes"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


class PrinterSettings(BaseSettings):
    """
    Receipt printer configuration.

    Environment variables use the PRINTER_ prefix (PRINTER_PORT_TYPE,
    PRINTER_TEXT_ENCODING, ...). The JSON file uses the bare field names.
    """

    model_config = SettingsConfigDict(
        env_prefix="PRINTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        json_file=os.getenv("PRINTER_CONFIG_FILE", "printer.config.json"),
        json_file_encoding="utf-8",
    )

    enabled: bool = Field(default=True, description="Master switch for printing")
    driver: PrinterDriver = Field(
        default=PrinterDriver.NATIVE,
        description="native (vendor DLL), escpos or simulated"
    )
    dll_path: str = Field(
        default="CsnPrinterLibs.dll",
        description="Path of the vendor printer library"
    )

    port_type: PortType = Field(default=PortType.USB)
    port_name: str = Field(
        default="USB001",
        description="COM3, USB001, LPT1, host name, or vid:pid for escpos USB"
    )
    printer_name: Optional[str] = Field(default="POS80")
    tcp_port: int = Field(default=9100)

    baudrate: int = Field(default=9600)
    flowcontrol: int = Field(default=0)
    parity: int = Field(default=0)
    databits: int = Field(default=8)
    stopbits: int = Field(default=0)

    text_encoding: TextEncoding = Field(
        default=TextEncoding.UTF8,
        description="Default encoding for lines without CJK text"
    )
    check_status: bool = Field(
        default=False,
        description="Probe printer status before and after each job"
    )
    status_timeout_ms: int = Field(default=3000)
    post_print_settle_seconds: float = Field(default=0.5)
    init_on_startup: bool = Field(
        default=False,
        description="Open, reset and self-test the printer when the app starts"
    )

    @field_validator("port_type", mode="before")
    @classmethod
    def normalize_port_type(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("text_encoding", mode="before")
    @classmethod
    def parse_text_encoding(cls, v):
        if isinstance(v, str) and v.strip().lstrip("-").isdigit():
            return int(v)
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are loaded only once and stay
    consistent across the application lifecycle.

    Returns:
        Settings: Configured application settings
    """
    return Settings()


@lru_cache()
def get_printer_settings() -> PrinterSettings:
    """Get cached printer settings."""
    return PrinterSettings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Console output for everything, plus a size-rotated file for the
    printing subsystem so device faults can be inspected on the kiosk.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured application logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    printing_logger = logging.getLogger("app.services.printing")
    if settings.printer_log_file and not printing_logger.handlers:
        log_path = Path(settings.printer_log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.printer_log_max_bytes,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(log_format, date_format))
        printing_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    return logging.getLogger("app")

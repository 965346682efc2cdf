"""
Configuration Tests

Printer settings precedence (env over JSON file over defaults) and value
normalization.
"""
import json
import logging

import pytest
from pydantic import ValidationError
from pydantic_settings import SettingsConfigDict

from app.core.config import (
    EnvironmentMode,
    PortType,
    PrintDispatchMode,
    PrinterDriver,
    PrinterSettings,
    Settings,
    TextEncoding,
    setup_logging,
)


def printer_settings_from(path):
    class FilePrinterSettings(PrinterSettings):
        model_config = SettingsConfigDict(json_file=str(path))

    return FilePrinterSettings()


@pytest.fixture
def printer_json(tmp_path):
    path = tmp_path / "printer.config.json"
    path.write_text(json.dumps({
        "port_type": "tcp",
        "port_name": "10.0.0.9",
        "tcp_port": 9101,
        "text_encoding": 3,
        "check_status": True,
    }), encoding="utf-8")
    return path


# ============================================================================
# PRINTER SETTINGS
# ============================================================================

class TestPrinterSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PRINTER_DRIVER")
        config = PrinterSettings()

        assert config.enabled
        assert config.driver == PrinterDriver.NATIVE
        assert config.port_type == PortType.USB
        assert config.port_name == "USB001"
        assert config.text_encoding == TextEncoding.UTF8
        assert config.check_status is False
        assert config.init_on_startup is False

    def test_init_on_startup_from_env(self, monkeypatch):
        monkeypatch.setenv("PRINTER_INIT_ON_STARTUP", "true")
        assert PrinterSettings(driver="simulated").init_on_startup is True

    def test_json_file_is_read(self, printer_json):
        config = printer_settings_from(printer_json)

        assert config.port_type == PortType.TCP
        assert config.port_name == "10.0.0.9"
        assert config.tcp_port == 9101
        assert config.text_encoding == TextEncoding.BIG5
        assert config.check_status is True

    def test_environment_overrides_json(self, printer_json, monkeypatch):
        monkeypatch.setenv("PRINTER_PORT_NAME", "10.0.0.10")
        monkeypatch.setenv("PRINTER_CHECK_STATUS", "false")

        config = printer_settings_from(printer_json)

        assert config.port_name == "10.0.0.10"
        assert config.check_status is False
        assert config.tcp_port == 9101

    def test_missing_json_file_uses_defaults(self, tmp_path):
        config = printer_settings_from(tmp_path / "absent.json")
        assert config.port_name == "USB001"

    @pytest.mark.parametrize("raw,expected", [
        ("0", TextEncoding.GBK),
        ("1", TextEncoding.UTF8),
        (" 3 ", TextEncoding.BIG5),
        (3, TextEncoding.BIG5),
    ])
    def test_text_encoding_parsing(self, raw, expected):
        assert PrinterSettings(text_encoding=raw).text_encoding == expected

    def test_unknown_text_encoding_rejected(self):
        with pytest.raises(ValidationError):
            PrinterSettings(text_encoding="2")

    @pytest.mark.parametrize("raw", ["com", "Com", "COM"])
    def test_port_type_is_case_insensitive(self, raw):
        assert PrinterSettings(port_type=raw).port_type == PortType.COM


# ============================================================================
# APPLICATION SETTINGS
# ============================================================================

class TestSettings:

    def test_defaults(self):
        settings = Settings()

        assert settings.api_port == 3001
        assert settings.print_dispatch == PrintDispatchMode.LOCAL
        assert settings.uses_sqlite
        assert settings.currency_symbol == "HK$"

    def test_env_mode_is_case_insensitive(self):
        settings = Settings(env_mode="PRODUCTION")
        assert settings.env_mode == EnvironmentMode.PRODUCTION
        assert settings.is_production

    def test_invalid_env_mode(self):
        with pytest.raises(ValidationError):
            Settings(env_mode="qa")

    def test_celery_dispatch_from_env(self, monkeypatch):
        monkeypatch.setenv("PRINT_DISPATCH", "celery")
        assert Settings().print_dispatch == PrintDispatchMode.CELERY


# ============================================================================
# LOGGING
# ============================================================================

class TestLogging:

    def test_setup_logging_returns_app_logger(self):
        """Module loggers (app.services.*) propagate to the returned logger."""
        logger = setup_logging()

        assert logger is logging.getLogger("app")
        assert logging.getLogger("app.services.orders").parent.name.startswith("app")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

"""
Tests for configuration and structured logging
"""

import json
import logging
import sys
import pytest
from pydantic import ValidationError

from loan_ledger import config as config_module
from loan_ledger.config import LedgerConfig
from loan_ledger.logging_config import (
    JSONFormatter, ROOT_LOGGER, get_logger, log_action, setup_logging
)


class TestLedgerConfig:
    """Test environment-driven configuration"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOAN_LEDGER_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("LOAN_LEDGER_CACHE_TTL_SECONDS", raising=False)
        settings = LedgerConfig()
        assert settings.storage_backend == "sqlite"
        assert settings.cache_ttl_seconds == 60.0
        assert settings.refresh_debounce_seconds == 0.1
        assert settings.enable_transaction_log is True

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("LOAN_LEDGER_STORAGE_BACKEND", "MEMORY")
        monkeypatch.setenv("LOAN_LEDGER_CACHE_TTL_SECONDS", "5")
        monkeypatch.setenv("LOAN_LEDGER_API_PORT", "9000")

        settings = LedgerConfig()
        assert settings.storage_backend == "memory"
        assert settings.cache_ttl_seconds == 5.0
        assert settings.api_port == 9000

    def test_invalid_backend(self):
        with pytest.raises(ValidationError):
            LedgerConfig(storage_backend="postgres")

    def test_negative_durations(self):
        with pytest.raises(ValidationError):
            LedgerConfig(cache_ttl_seconds=-1)
        with pytest.raises(ValidationError):
            LedgerConfig(refresh_debounce_seconds=-0.5)

    def test_reload_config(self, monkeypatch):
        original = config_module.config
        monkeypatch.setenv("LOAN_LEDGER_LOG_LEVEL", "DEBUG")
        try:
            reloaded = config_module.reload_config()
            assert reloaded.log_level == "DEBUG"
            assert config_module.get_config() is reloaded
        finally:
            config_module.config = original


@pytest.fixture
def restore_root_logger():
    """setup_logging replaces handlers on the package logger; put them back"""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def make_record(**fields):
    record = logging.LogRecord("loan_ledger.engine", logging.INFO, __file__, 1,
                               "Payment applied", None, None)
    for key, value in fields.items():
        setattr(record, key, value)
    return record


class TestStructuredLogging:
    """Test JSON log formatting and helpers"""

    def test_json_formatter_fields(self):
        record = make_record(action="apply_payment", loan_id=3, payment_id=8,
                             extra={"amount": "100"})
        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "loan_ledger.engine"
        assert entry["message"] == "Payment applied"
        assert entry["action"] == "apply_payment"
        assert entry["loan_id"] == 3
        assert entry["payment_id"] == 8
        assert entry["extra"] == {"amount": "100"}
        assert "customer_id" not in entry
        assert "timestamp" in entry

    def test_json_formatter_exception(self):
        try:
            raise ValueError("bad row")
        except ValueError:
            record = logging.LogRecord("loan_ledger", logging.ERROR, __file__, 1,
                                       "failed", None, sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad row" in entry["exception"]

    def test_get_logger_names(self):
        assert get_logger().name == "loan_ledger"
        assert get_logger("engine").name == "loan_ledger.engine"

    def test_setup_logging_to_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging(level="DEBUG", log_format="json", log_file=str(log_file))
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

        log_action(get_logger("engine"), "info", "Loan created", action="create_loan",
                   loan_id=1, customer_id=2)
        for handler in logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["action"] == "create_loan"
        assert entry["loan_id"] == 1
        assert entry["customer_id"] == 2

    def test_setup_logging_text_format(self, restore_root_logger):
        logger = setup_logging(level="warning", log_format="text")
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False

"""
Test suite for configuration and structured logging
"""

import json
import logging

import pytest

from lendbook.config import LendbookConfig, reload_config, get_config
from lendbook.logging_config import JSONFormatter, setup_logging, get_logger, log_action


class ListHandler(logging.Handler):
    """Collects formatted records"""

    def __init__(self):
        super().__init__()
        self.lines = []

    def emit(self, record):
        self.lines.append(self.format(record))


class TestConfig:
    """Test environment-driven configuration"""

    def test_defaults(self):
        """Test lending defaults"""
        config = LendbookConfig(_env_file=None)
        assert config.default_currency == "PHP"
        assert config.api_port == 8090
        assert config.min_loan_term_months == 1
        assert config.max_loan_term_months == 60
        assert config.collection_series_months == 6
        # Capital checks always apply; rates are always given per loan
        assert "enforce_creditor_capital" not in LendbookConfig.model_fields
        assert "default_interest_rate_monthly" not in LendbookConfig.model_fields

    def test_environment_override(self, monkeypatch):
        """Test LENDBOOK_ prefixed variables are picked up on reload"""
        monkeypatch.setenv("LENDBOOK_MAX_LOAN_AMOUNT", "500000.00")
        monkeypatch.setenv("LENDBOOK_ENABLE_AUDIT_LOGGING", "false")
        try:
            config = reload_config()
            assert config.max_loan_amount == "500000.00"
            assert config.enable_audit_logging is False
            assert get_config() is config
        finally:
            monkeypatch.delenv("LENDBOOK_MAX_LOAN_AMOUNT")
            monkeypatch.delenv("LENDBOOK_ENABLE_AUDIT_LOGGING")
            reload_config()


class TestLogging:
    """Test structured log output"""

    @pytest.fixture
    def handler(self):
        logger = setup_logging("DEBUG", logger_name="lendbook.test", log_format="json")
        handler = ListHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        yield handler
        logger.removeHandler(handler)

    def test_log_action_fields(self, handler):
        """Test action metadata becomes JSON keys"""
        log_action(get_logger("lendbook.test"), "info", "Loan created", user_id="ops",
                   action="loan.create", resource="L1", extra={"principal": "5000.00"})
        entry = json.loads(handler.lines[-1])
        assert entry["message"] == "Loan created"
        assert entry["level"] == "INFO"
        assert entry["action"] == "loan.create"
        assert entry["resource"] == "L1"
        assert entry["user_id"] == "ops"
        assert entry["extra"] == {"principal": "5000.00"}
        assert "correlation_id" not in entry

    def test_level_filtering(self, handler):
        """Test records below the logger level are dropped"""
        logger = setup_logging("WARNING", logger_name="lendbook.test")
        logger.addHandler(handler)
        log_action(logger, "info", "ignored")
        log_action(logger, "warning", "kept")
        assert [json.loads(line)["message"] for line in handler.lines] == ["kept"]

    def test_setup_replaces_handlers(self):
        """Test repeated setup does not stack handlers"""
        setup_logging("INFO", logger_name="lendbook.test2", log_format="text")
        logger = setup_logging("INFO", logger_name="lendbook.test2", log_format="text")
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_file_output(self, tmp_path):
        """Test logging to a file"""
        path = tmp_path / "lendbook.log"
        logger = setup_logging("INFO", logger_name="lendbook.test3", log_file=str(path))
        logger.info("written")
        for h in logger.handlers:
            h.flush()
        assert json.loads(path.read_text().strip())["message"] == "written"
        for h in logger.handlers[:]:
            h.close()
            logger.removeHandler(h)

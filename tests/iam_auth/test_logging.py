"""Tests for log formatting and setup."""

import json
import logging

import pytest

from iam_auth.errors import TokenExchangeError
from iam_auth.logging.formatters import ConsoleFormatter, JSONFormatter
from iam_auth.logging.setup import setup_logging
from iam_auth.logging.utilities import log_exception


def make_record(msg="IAM token refreshed", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="iam_auth.manager",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_includes_whitelisted_extras(self):
        record = make_record(
            identity="https://iam.example.com apikey=test***",
            expires_in=3600,
            unrelated="dropped",
        )

        entry = json.loads(JSONFormatter().format(record))

        assert entry["msg"] == "IAM token refreshed"
        assert entry["level"] == "INFO"
        assert entry["expires_in"] == 3600
        assert entry["identity"].endswith("test***")
        assert "unrelated" not in entry

    def test_sanitizes_url_fields(self):
        record = make_record(
            api_endpoint="https://iam.example.com/identity/token?apikey=secret"
        )

        entry = json.loads(JSONFormatter().format(record))

        assert "secret" not in entry["api_endpoint"]


class TestConsoleFormatter:
    """Tests for ConsoleFormatter."""

    def test_shows_identity(self):
        record = make_record(identity="https://iam.example.com apikey=test***")

        output = ConsoleFormatter().format(record)

        assert "IAM token refreshed" in output
        assert "https://iam.example.com" in output


class TestLogException:
    """Tests for log_exception."""

    def test_adds_category_and_sanitized_message(self, caplog):
        logger = logging.getLogger("iam_auth.test")
        error = TokenExchangeError(
            "Error in fetching token, body: apikey=abc123", status_code=401
        )

        with caplog.at_level(logging.WARNING, logger="iam_auth.test"):
            log_exception(
                logger, error, "Failed getting IAM token",
                level=logging.WARNING, include_traceback=False,
            )

        record = caplog.records[-1]
        assert record.error_category == "auth"
        assert "abc123" not in record.error_message


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def cleanup(self):
        yield
        logging.getLogger().handlers.clear()

    def test_console_only(self):
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_with_rotating_file(self, tmp_path):
        log_file = tmp_path / "logs" / "iam.log"

        logger = setup_logging(log_file=log_file)
        logger.info("hello")

        assert len(logging.getLogger().handlers) == 2
        assert log_file.exists()

    def test_suppresses_noisy_loggers(self):
        setup_logging()
        assert logging.getLogger("urllib3").level == logging.WARNING

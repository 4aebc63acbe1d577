"""
Tests for process logging setup.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest

from buyback.utils import logging as buyback_logging
from buyback.utils.logging import LocalFormatter, service_labels, setup_logging


@pytest.fixture
def root_logger(monkeypatch):
    """Root logger restored after the test, with setup allowed to run again."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    # The API module configures logging on import
    root.handlers[:] = [h for h in handlers if not isinstance(h.formatter, LocalFormatter)]
    monkeypatch.setattr(buyback_logging, "_logging_configured", False)
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def local_handlers(root):
    return [h for h in root.handlers if isinstance(h.formatter, LocalFormatter)]


class TestLocalLogging:
    def test_installs_one_handler(self, root_logger, monkeypatch):
        monkeypatch.delenv("K_SERVICE", raising=False)

        setup_logging("buyback-test", level=logging.DEBUG)
        monkeypatch.setattr(buyback_logging, "_logging_configured", False)
        setup_logging("buyback-test", level=logging.DEBUG)

        (handler,) = local_handlers(root_logger)
        assert "buyback-test" in handler.formatter._fmt
        assert root_logger.level == logging.DEBUG

    def test_formatter_appends_json_fields(self):
        formatter = LocalFormatter("%(message)s")
        record = logging.LogRecord(
            "buyback", logging.INFO, __file__, 1, "Refreshed %s", ("SHC-30000",), None
        )
        record.json_fields = {"order_id": "SHC-30000", "status": "kit_sent"}

        output = formatter.format(record)

        assert output.startswith("Refreshed SHC-30000\n")
        assert '"status": "kit_sent"' in output

    def test_formatter_without_json_fields(self):
        formatter = LocalFormatter("%(message)s")
        record = logging.LogRecord(
            "buyback", logging.INFO, __file__, 1, "plain", None, None
        )
        assert formatter.format(record) == "plain"


class TestCloudLogging:
    def test_handler_is_labelled_with_service(self, root_logger, monkeypatch):
        monkeypatch.setenv("K_SERVICE", "buyback-api")
        monkeypatch.setenv("K_REVISION", "buyback-api-00042")
        client = MagicMock()

        with (
            patch("google.cloud.logging.Client", return_value=client),
            patch("google.cloud.logging.handlers.setup_logging") as attach,
        ):
            setup_logging("buyback-api")

        client.get_default_handler.assert_called_once_with(
            labels={"service": "buyback-api", "revision": "buyback-api-00042"}
        )
        attach.assert_called_once_with(
            client.get_default_handler.return_value, log_level=logging.INFO
        )
        assert local_handlers(root_logger) == []

    def test_failure_falls_back_to_single_local_handler(self, root_logger, monkeypatch):
        monkeypatch.setenv("K_SERVICE", "buyback-api")
        monkeypatch.delenv("K_REVISION", raising=False)

        with patch("google.cloud.logging.Client", side_effect=RuntimeError("no creds")):
            setup_logging("buyback-api")
            monkeypatch.setattr(buyback_logging, "_logging_configured", False)
            setup_logging("buyback-api")

        assert len(local_handlers(root_logger)) == 1

    def test_service_labels_without_revision(self, monkeypatch):
        monkeypatch.delenv("K_REVISION", raising=False)
        assert service_labels("buyback-worker") == {"service": "buyback-worker"}

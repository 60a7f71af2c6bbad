"""Tests for console.py module."""

import logging
from unittest.mock import patch

import pytest
from rich.logging import RichHandler

from ceph_mgr_endpoints import console


@pytest.fixture
def package_logger():
    """Restore the package logger after a test reconfigures it."""
    logger = logging.getLogger(console.LOGGER_NAME)
    saved = (logger.handlers[:], logger.level, logger.propagate)
    yield logger
    logger.handlers, logger.level, logger.propagate = saved


class TestLogging:
    """Tests for logging setup."""

    def test_configure_logging(self, package_logger):
        """Test a single Rich handler is attached."""
        console.configure_logging(debug=False)
        console.configure_logging(debug=False)

        assert len(package_logger.handlers) == 1
        assert isinstance(package_logger.handlers[0], RichHandler)
        assert package_logger.level == logging.INFO

    def test_set_debug_toggles_level_and_icecream(self, package_logger):
        """Test debug switches the log level and icecream in place."""
        with patch("ceph_mgr_endpoints.console.ic") as mock_ic:
            console.set_debug(True)
            assert package_logger.level == logging.DEBUG
            mock_ic.enable.assert_called_once()

            console.set_debug(False)
            assert package_logger.level == logging.INFO
            mock_ic.disable.assert_called_once()


class TestConsoleOutput:
    """Tests for console output functions."""

    def test_error_message(self):
        """Test error message format."""
        with patch.object(console.console, "print") as mock_print:
            console.error("Something failed")
            mock_print.assert_called_once()
            call_arg = mock_print.call_args[0][0]
            assert "✗" in call_arg
            assert "Something failed" in call_arg

    def test_summary_panel(self):
        """Test summary panel prints once."""
        with patch.object(console.console, "print") as mock_print:
            console.summary_panel("ceph-mgr-endpoints", {"Namespace": "ceph", "Interval": "30s"})
            mock_print.assert_called_once()

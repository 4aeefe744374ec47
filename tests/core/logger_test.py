"""Tests for the logger module."""

import logging
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

from gatekeeper.core.config import Environment
from gatekeeper.core.logger import (
    LOG_LEVELs,
    InterceptHandler,
    configure_uvicorn_logging,
    correlation_filter,
    request_id_var,
    setup_logger,
    shutdown_logger,
)


class TestCorrelationFilter:
    """Tests for correlation_filter function."""

    def test_adds_request_id(self):
        token = request_id_var.set("req-1234")

        try:
            record = {"extra": {}}
            result = correlation_filter(record)

            assert result is True
            assert record["extra"]["request_id"] == "req-1234"
        finally:
            request_id_var.reset(token)

    def test_placeholder_outside_request(self):
        """Test that records outside a request get a placeholder request id."""
        token = request_id_var.set(None)

        try:
            record = {"extra": {}}
            correlation_filter(record)

            assert record["extra"]["request_id"] == "-"
        finally:
            request_id_var.reset(token)

    def test_adds_process_id(self):
        record = {"extra": {}}
        correlation_filter(record)

        assert record["extra"]["process_id"] == os.getpid()


class TestInterceptHandler:
    """Tests for InterceptHandler class."""

    def _record(self, level: int) -> logging.LogRecord:
        return logging.LogRecord(
            name="uvicorn.error",
            level=level,
            pathname="server.py",
            lineno=10,
            msg="Started server process",
            args=(),
            exc_info=None,
        )

    def test_emit_redirects_to_loguru(self):
        with patch("gatekeeper.core.logger.logger") as mock_logger:
            mock_logger.level.return_value.name = "INFO"

            InterceptHandler().emit(self._record(logging.INFO))

            mock_logger.opt.return_value.log.assert_called_once_with(
                "INFO", "Started server process"
            )

    def test_emit_handles_unknown_level(self):
        """Test that a level unknown to loguru is passed through as a number."""
        with patch("gatekeeper.core.logger.logger") as mock_logger:
            mock_logger.level.side_effect = ValueError("Unknown level")

            InterceptHandler().emit(self._record(25))

            mock_logger.opt.return_value.log.assert_called_once_with(25, "Started server process")


class TestSetupLogger:
    """Tests for setup_logger function."""

    def test_console_and_file_sinks(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "app.log"

        with (
            patch("gatekeeper.core.logger.logger") as mock_logger,
            patch("gatekeeper.core.logger.settings") as mock_settings,
        ):
            mock_settings.current_environment = Environment.LOCAL
            mock_settings.log_level = logging.INFO

            setup_logger(log_file)

            mock_logger.remove.assert_called_once()
            assert mock_logger.add.call_count == 2
            assert mock_logger.add.call_args_list[1][0][0] == log_file
            assert log_file.parent.is_dir()

    def test_console_only_without_log_file(self):
        with (
            patch("gatekeeper.core.logger.logger") as mock_logger,
            patch("gatekeeper.core.logger.settings") as mock_settings,
        ):
            mock_settings.current_environment = Environment.LOCAL
            mock_settings.log_level = logging.INFO

            setup_logger(None)

            assert mock_logger.add.call_count == 1

    def test_no_diagnose_in_production(self, tmp_path: Path):
        """Test that variable values are kept out of production tracebacks."""
        with (
            patch("gatekeeper.core.logger.logger") as mock_logger,
            patch("gatekeeper.core.logger.settings") as mock_settings,
        ):
            mock_settings.current_environment = Environment.PRD
            mock_settings.log_level = logging.WARNING

            setup_logger(tmp_path / "app.log")

            file_sink_kwargs = mock_logger.add.call_args_list[1][1]
            assert file_sink_kwargs["diagnose"] is False
            assert file_sink_kwargs["level"] == "WARNING"


class TestConfigureUvicornLogging:
    """Tests for configure_uvicorn_logging function."""

    def test_replaces_uvicorn_handlers(self):
        uvicorn_logger = logging.getLogger("uvicorn.access")

        with patch("gatekeeper.core.logger.logger"):
            configure_uvicorn_logging()

        assert len(uvicorn_logger.handlers) == 1
        assert isinstance(uvicorn_logger.handlers[0], InterceptHandler)
        assert uvicorn_logger.propagate is False


class TestShutdownLogger:
    """Tests for shutdown_logger function."""

    def test_flushes_pending_records(self):
        with patch("gatekeeper.core.logger.logger") as mock_logger:
            mock_logger.complete = MagicMock()

            shutdown_logger()

            mock_logger.complete.assert_called_once()


class TestLogLevels:
    """Tests for LOG_LEVELs mapping."""

    def test_standard_levels(self):
        assert LOG_LEVELs[logging.INFO] == "INFO"
        assert LOG_LEVELs[logging.WARNING] == "WARNING"
        assert LOG_LEVELs[5] == "TRACE"

"""Tests for structured logging."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from metacatalog.config.models import LoggingConfig, LogOutputConfig
from metacatalog.core.logging import configure_logging, get_logger


class TestLoggingConfiguration:
    """Logging configuration tests."""

    def setup_method(self) -> None:
        """Reset structlog and stdlib logging before each test."""
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()

    def test_given_json_format_when_log_then_valid_json_output(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """JSON format produces valid JSON with required fields."""
        # Given
        configure_logging(json_format=True, level="INFO")
        logger = get_logger("test")

        # When
        logger.info("schema_added", schema_id=16777215)

        # Then
        captured = capsys.readouterr()
        lines = [line for line in captured.err.strip().split("\n") if line]
        data = json.loads(lines[-1])
        assert data["event"] == "schema_added"
        assert data["schema_id"] == 16777215
        assert data["logger"] == "test"
        assert data["level"] == "info"
        assert "timestamp" in data

    def test_given_config_object_when_configure_then_takes_precedence(self, tmp_path: Path) -> None:
        """LoggingConfig object takes precedence over simple params."""
        # Given
        log_file = tmp_path / "test.log"
        config = LoggingConfig(
            level="DEBUG",
            outputs=[LogOutputConfig(format="json", destination=str(log_file))],
        )

        # When - config's DEBUG should override the level="ERROR" param
        configure_logging(config=config, json_format=False, level="ERROR")
        get_logger().debug("debug msg")

        # Then
        assert "debug msg" in log_file.read_text()

    def test_given_multi_output_config_when_configure_then_logs_to_all(
        self, tmp_path: Path
    ) -> None:
        """Multiple outputs receive logs according to their levels."""
        # Given
        debug_file = tmp_path / "debug.log"
        info_file = tmp_path / "info.log"
        config = LoggingConfig(
            level="DEBUG",
            outputs=[
                LogOutputConfig(format="json", destination=str(info_file), level="INFO"),
                LogOutputConfig(format="console", destination=str(debug_file)),
            ],
        )

        # When
        configure_logging(config=config)
        logger = get_logger()
        logger.debug("debug only")
        logger.info("info msg")

        # Then - info_file should have INFO only (not DEBUG)
        info_content = info_file.read_text()
        assert "info msg" in info_content
        assert "debug only" not in info_content

        # Then - debug_file should have both (inherits DEBUG from config level)
        debug_content = debug_file.read_text()
        assert "debug only" in debug_content
        assert "info msg" in debug_content

    def test_given_console_only_when_configure_then_engine_logger_quiet(self) -> None:
        """Console-only setup quiets the SQLAlchemy engine logger."""
        # When
        configure_logging(level="WARNING")

        # Then
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_given_store_failure_when_logged_then_written_as_json(self, tmp_path: Path) -> None:
        """Library modules log through the configured handlers."""
        # Given
        from metacatalog.catalog.database import Database
        from metacatalog.core.errors import BackingStoreError

        log_file = tmp_path / "store.log"
        configure_logging(
            config=LoggingConfig(
                level="INFO",
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )
        db = Database(tmp_path / "empty.db")

        # When - no relations were created, so the read fails
        with pytest.raises(BackingStoreError), db.session("read_targets") as session:
            session.connection().exec_driver_sql("SELECT * FROM targets")
        db.dispose()

        # Then
        records = [json.loads(line) for line in log_file.read_text().splitlines() if line]
        failure = next(r for r in records if r["event"] == "backing_store_failure")
        assert failure["operation"] == "read_targets"
        assert failure["level"] == "error"

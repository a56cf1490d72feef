"""Unit tests for logging utilities."""

import io
import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest


class TestCreateLogger:
    def test_text_format_to_stream(self) -> None:
        from pidone.utils import create_logger

        stream = io.StringIO()
        logger = create_logger(stream=stream)

        logger.info("test_event", key="value")

        output = stream.getvalue()
        assert "test_event" in output
        assert "key=value" in output

    def test_json_format(self) -> None:
        from pidone.utils import create_logger

        stream = io.StringIO()
        logger = create_logger(log_format="json", stream=stream)

        logger.warning("test_event", key="value")

        record = json.loads(stream.getvalue())
        assert record["event"] == "test_event"
        assert record["key"] == "value"
        assert record["level"] == "warning"
        assert "timestamp" in record

    def test_binds_instance(self) -> None:
        from pidone.utils import create_logger

        stream = io.StringIO()
        logger = create_logger(log_format="json", stream=stream, instance="CACHE")

        logger.info("bound")

        assert json.loads(stream.getvalue())["instance"] == "CACHE"

    def test_level_filters_records(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from pidone.utils import create_logger

        monkeypatch.delenv("PIDONE_DEBUG", raising=False)
        stream = io.StringIO()
        logger = create_logger(level="warning", stream=stream)

        logger.info("hidden")
        logger.error("shown")

        output = stream.getvalue()
        assert "hidden" not in output
        assert "shown" in output

    def test_debug_env_overrides_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from pidone.utils import create_logger

        monkeypatch.setenv("PIDONE_DEBUG", "1")
        stream = io.StringIO()
        logger = create_logger(level="error", stream=stream)

        logger.debug("debug_event")

        assert "debug_event" in stream.getvalue()

    def test_log_file_creates_directory(self, tmp_path: Path) -> None:
        from pidone.utils import create_logger

        log_path = tmp_path / "logs" / "pidone.log"
        logger = create_logger(log_format="json", log_file=str(log_path))

        logger.info("file_event")

        assert log_path.parent.exists()
        assert '"event": "file_event"' in log_path.read_text()


class TestCreateLoggerRotation:
    def test_with_rotation_uses_stdlib_logger(self, tmp_path: Path) -> None:
        from pidone.utils._logging import _create_logger

        log_path = tmp_path / "rotating.log"
        logger = _create_logger(
            log_file_path=str(log_path),
            log_level=logging.INFO,
            max_bytes=1000,
            backup_count=3,
        )

        stdlib_loggers = [
            lg
            for lg in logging.Logger.manager.loggerDict.values()
            if isinstance(lg, logging.Logger) and lg.name.startswith("pidone.rotating.")
        ]
        assert stdlib_loggers
        assert isinstance(stdlib_loggers[-1].handlers[0], RotatingFileHandler)

        logger.info("rotated_event")
        assert "rotated_event" in log_path.read_text()

    def test_create_logger_rotates_log_file(self, tmp_path: Path) -> None:
        from pidone.utils import create_logger

        log_path = tmp_path / "pidone.log"
        logger = create_logger(
            log_format="json",
            log_file=str(log_path),
            max_bytes=200,
            backup_count=2,
        )

        for index in range(20):
            logger.info("rotation_event", index=index)

        assert (tmp_path / "pidone.log.1").exists()
        assert (tmp_path / "pidone.log.2").exists()
        assert not (tmp_path / "pidone.log.3").exists()
        assert "rotation_event" in log_path.read_text()

    def test_rotation_needs_both_settings(self, tmp_path: Path) -> None:
        from pidone.utils import create_logger

        log_path = tmp_path / "pidone.log"
        logger = create_logger(log_format="json", log_file=str(log_path), max_bytes=200)

        for index in range(20):
            logger.info("rotation_event", index=index)

        assert not (tmp_path / "pidone.log.1").exists()
        assert log_path.stat().st_size > 200


class TestLogLevelFromEnv:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("bogus", logging.INFO)],
    )
    def test_log_level_env(
        self, monkeypatch: pytest.MonkeyPatch, value: str, expected: int
    ) -> None:
        from pidone.utils._logging import _get_log_level

        monkeypatch.delenv("PIDONE_DEBUG", raising=False)
        monkeypatch.setenv("PIDONE_LOG_LEVEL", value)

        assert _get_log_level() == expected

    def test_unconfigured_level_comes_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from pidone.utils._logging import _create_logger

        monkeypatch.delenv("PIDONE_DEBUG", raising=False)
        monkeypatch.setenv("PIDONE_LOG_LEVEL", "error")
        stream = io.StringIO()
        logger = _create_logger(stream=stream)

        logger.warning("hidden")

        assert stream.getvalue() == ""

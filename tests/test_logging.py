"""Tests for logging setup and step logging."""

import io
import json
import logging

import pytest

from crate_catalog.logging import JsonFormatter, get_logger, log_step, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_single_handler(self):
        """Repeated setup should not stack handlers."""
        setup_logging(stream=io.StringIO())
        logger = setup_logging(stream=io.StringIO())
        assert len(logger.handlers) == 1

    def test_json_lines(self):
        """JSON mode should emit one object per line."""
        stream = io.StringIO()
        setup_logging(json_format=True, stream=stream)

        get_logger("pipeline").info("Extracted %d files", 3)

        record = json.loads(stream.getvalue().strip())
        assert record["message"] == "Extracted 3 files"
        assert record["logger"] == "crate_catalog.pipeline"
        assert record["level"] == "INFO"


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_context_fields(self):
        """Pipeline context set through extra should be included."""
        record = logging.LogRecord(
            "crate_catalog.pipeline", logging.INFO, __file__, 1, "done", None, None
        )
        record.step = "fetch"
        record.version = "0.1.0"
        data = json.loads(JsonFormatter().format(record))
        assert data["step"] == "fetch"
        assert data["version"] == "0.1.0"
        assert "library" not in data


class TestLogStep:
    """Tests for log_step."""

    def test_success(self, caplog):
        """A finished step should be logged with its duration."""
        with caplog.at_level(logging.DEBUG, logger="crate_catalog"):
            with log_step(get_logger("pipeline"), "parse", version="0.1.0"):
                pass

        finished = [r for r in caplog.records if "finished" in r.getMessage()]
        assert len(finished) == 1
        assert finished[0].step == "parse"
        assert finished[0].version == "0.1.0"
        assert finished[0].elapsed >= 0

    def test_failure_reraised(self, caplog):
        """A failing step should be logged and re-raised unchanged."""
        with caplog.at_level(logging.ERROR, logger="crate_catalog"):
            with pytest.raises(KeyError):
                with log_step(get_logger("pipeline"), "generate"):
                    raise KeyError("boom")

        assert "Step generate failed" in caplog.text

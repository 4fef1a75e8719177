"""Logging for the catalog pipeline.

Every module logs through `get_logger(<module>)`, a child of the
`crate_catalog` logger. The CLI calls `setup_logging` once per invocation to
attach a single stderr handler, either human-readable or one JSON object per
line for CI build logs.

Pipeline steps run inside `log_step`, which times the step and tags its log
records with the step name and release, so a JSON log can be filtered per
step.
"""

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

ROOT_LOGGER = "crate_catalog"

# Record attributes copied into JSON output when a log call sets them
CONTEXT_FIELDS = ("step", "library", "version", "path", "elapsed")


def setup_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure the crate_catalog logger.

    Args:
        level: Logging level (default: INFO)
        json_format: If True, emit one JSON object per line
        stream: Destination stream (default: stderr)

    Returns:
        The configured root logger of the package
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Repeated CLI invocations in one process must not stack handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    logger.addHandler(handler)

    return logger


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with pipeline context when present."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = str(value) if name == "path" else value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get the package logger, or its `crate_catalog.<name>` child."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)


@contextmanager
def log_step(logger: logging.Logger, step: str, **context: Any) -> Iterator[None]:
    """
    Log the start, duration and failure of a pipeline step.

    Failures are logged and re-raised unchanged.
    """
    extra = {"step": step, **context}
    logger.debug("Step %s started", step, extra=extra)
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed = round(time.perf_counter() - started, 3)
        logger.error(
            "Step %s failed after %.2fs: %s", step, elapsed, e, extra={**extra, "elapsed": elapsed}
        )
        raise
    elapsed = round(time.perf_counter() - started, 3)
    logger.info(
        "Step %s finished in %.2fs", step, elapsed, extra={**extra, "elapsed": elapsed}
    )

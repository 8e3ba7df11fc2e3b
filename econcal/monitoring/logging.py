"""Structured logging for the calendar pipeline.

Features:
- console handler
- JSON logs optional (easy ingestion)
- source_id / payload extras rendered by both formatters
"""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any

ROOT_LOGGER_NAMES = ("econcal", "adapter")

# ---------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "source_id"):
            base["source_id"] = record.source_id

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            base["payload"] = payload

        return json.dumps(base, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Format log records as human-readable text."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [record.levelname, record.name]

        source_id = getattr(record, "source_id", None)
        if source_id:
            parts.append(f"[source={source_id}]")

        parts.append(record.getMessage())
        s = " ".join(parts)

        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)

        return s


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------


def configure_logging(level: str = "INFO", json_logs: bool = False, stream=None) -> None:
    """
    Attach one console handler to the package loggers.

    Repeated calls replace the handler instead of stacking duplicates.
    """
    fmt = JsonFormatter() if json_logs else TextFormatter()
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    for name in ROOT_LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(numeric_level)
        logger.propagate = False

        for h in list(logger.handlers):
            if getattr(h, "_econcal_handler", False):
                logger.removeHandler(h)

        ch = logging.StreamHandler(stream or sys.stdout)
        ch.setLevel(numeric_level)
        ch.setFormatter(fmt)
        ch._econcal_handler = True
        logger.addHandler(ch)

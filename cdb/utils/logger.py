"""
Structured JSON logging for cdb.

Diagnostics go to stderr as one JSON object per line so that report output on
stdout (text or JSON) is never interleaved with log records.
"""

import json
import logging
import sys
from typing import Any

PACKAGE_LOGGER = "cdb"


class JSONFormatter(logging.Formatter):
    """
    Formatter that renders each log record as a single JSON object.

    Fields:
    - timestamp: ISO 8601 formatted timestamp
    - level: Log level name
    - logger: Logger name
    - message: Rendered log message
    - exception: Formatted traceback (only when exc_info is set)
    - context: Structured context passed via ``extra={"context": {...}}``
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "context"):
            log_data["context"] = record.context

        return json.dumps(log_data, ensure_ascii=False, default=str)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Get or create a structured JSON logger.

    Args:
        name: Logger name (typically __name__)
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Handlers are installed once per logger name
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_log_level(level: int) -> None:
    """
    Change the level of every cdb logger created so far.

    Args:
        level: New logging level (e.g. logging.DEBUG for --verbose)
    """
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not isinstance(candidate, logging.Logger):
            continue
        if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
            candidate.setLevel(level)

"""Logging setup.

Modules log through ``logging.getLogger(__name__)`` and attach key/value
context with ``extra={"context": {...}}``. ContextFormatter renders it as a
JSON object after the message:

    [2024-01-15 10:30:00] pobo_sync.api.client.INFO: API request {"method": "GET"}
"""

from __future__ import annotations

import json
import logging

from pobo_sync.config import Settings

LOG_FORMAT = "[%(asctime)s] %(name)s.%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ContextFormatter(logging.Formatter):
    """Formatter that appends the record's ``context`` mapping as JSON."""

    def __init__(self, fmt: str = LOG_FORMAT, datefmt: str = DATE_FORMAT) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            rendered = json.dumps(context, default=str, ensure_ascii=False)
            head, sep, tail = line.partition("\n")
            line = f"{head} {rendered}{sep}{tail}"
        return line


def configure_logging(settings: Settings, logger_name: str = "pobo_sync") -> logging.Logger:
    """Attach a single formatted handler to the package logger."""
    logger = logging.getLogger(logger_name)
    logger.setLevel(settings.log_level.upper())

    if settings.log_file:
        handler: logging.Handler = logging.FileHandler(settings.log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter())

    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    return logger

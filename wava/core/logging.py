"""
Structured logging configuration.
Uses Python's built-in logging with single-line structured output.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

from .config import get_settings

_HANDLER_NAME = "wava-console"


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).isoformat()
        log_entry = (
            f"{timestamp} | {record.levelname:<8} | "
            f"{record.name}:{record.funcName}:{record.lineno} | "
            f"{record.getMessage()}"
        )
        if record.exc_info and record.exc_info[1]:
            log_entry += f" | EXCEPTION: {self.formatException(record.exc_info)}"
        return log_entry


def setup_logging() -> None:
    """Install the console handler on the ``wava`` logger (idempotent)."""
    settings = get_settings()

    logger = logging.getLogger("wava")
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.set_name(_HANDLER_NAME)
        console_handler.setFormatter(StructuredFormatter())
        logger.addHandler(console_handler)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info("Logging initialized (level=%s)", settings.LOG_LEVEL)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"wava.{name}")

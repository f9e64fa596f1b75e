"""Structured logging for metrics events (report lines, scheduling faults, queries)."""

import logging
import os
import sys
from typing import Optional

DEFAULT_LOG_LEVEL = "INFO"


def _level_from_env() -> int:
    name = (os.environ.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Return a configured logger for observability (level defaults to LOG_LEVEL env)."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
            )
        )
        logger.addHandler(handler)
        logger.setLevel(level if level is not None else _level_from_env())
    return logger

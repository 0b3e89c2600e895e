"""Logging configuration using loguru."""
from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from .config import get_settings


def setup_logging(level: Optional[str] = None) -> None:
    """Route loguru output to stderr; ``level`` defaults to ``LOG_LEVEL`` from settings."""
    if level is None:
        level = get_settings().log_level
    logger.remove()
    logger.add(sys.stderr, level=level.upper())

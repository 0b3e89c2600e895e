"""Core settings and logging."""

from .config import EngineSettings, get_settings
from .logging_config import setup_logging

__all__ = ["EngineSettings", "get_settings", "setup_logging"]

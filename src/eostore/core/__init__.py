"""Core eostore utilities.

This module exports core utilities for use throughout the application.
"""

from eostore.core.config import Settings, get_settings
from eostore.core.logging import LoggingContext, configure_logging, get_logger

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "LoggingContext",
]

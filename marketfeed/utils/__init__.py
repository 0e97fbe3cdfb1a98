"""Utility package."""
from marketfeed.utils.config import Settings, get_settings
from marketfeed.utils.logger import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]

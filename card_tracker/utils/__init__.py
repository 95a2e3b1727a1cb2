"""Utilities package."""

from .config import ensure_export_dir, ensure_storage_dir, settings
from .log import LoggerMixin, configure_logging, get_logger

__all__ = [
    "settings",
    "ensure_storage_dir",
    "ensure_export_dir",
    "get_logger",
    "LoggerMixin",
    "configure_logging",
]

"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Tag comparison utilities
"""

from core.logging import configure_logging, get_logger, LoggerMixin
from core.utils import count_shared, normalize_string_set, safe_get, same_tag

__all__ = [
    "configure_logging",
    "get_logger",
    "LoggerMixin",
    "count_shared",
    "normalize_string_set",
    "safe_get",
    "same_tag",
]

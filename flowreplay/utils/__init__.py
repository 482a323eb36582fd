"""Utility modules for flow replay."""

from .logging import LogContext, configure_logging, get_logger, log_operation
from .text import collapse_whitespace, mask_text, normalize_text, truncate
from .urls import is_blank_page, is_same_origin, normalize_url, should_navigate

__all__ = [
    "LogContext",
    "configure_logging",
    "get_logger",
    "log_operation",
    "collapse_whitespace",
    "mask_text",
    "normalize_text",
    "truncate",
    "is_blank_page",
    "is_same_origin",
    "normalize_url",
    "should_navigate",
]

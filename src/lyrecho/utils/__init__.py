"""Utility modules."""

from .logging import setup_logging, get_logger
from .validation import (
    collapse_whitespace,
    validate_track_query,
    validate_offset,
    validate_sort_key,
)
from .cache import DiskCache, generate_key

__all__ = [
    "setup_logging",
    "get_logger",
    "collapse_whitespace",
    "validate_track_query",
    "validate_offset",
    "validate_sort_key",
    "DiskCache",
    "generate_key",
]

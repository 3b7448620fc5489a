"""Core shared helpers for md2norg."""

from __future__ import annotations

from .files import (
    extension_for,
    parse_extensions,
    read_text_file,
    write_text_file,
)
from .logging import JsonLogFormatter, configure_logger

__all__ = [
    "extension_for",
    "parse_extensions",
    "read_text_file",
    "write_text_file",
    "configure_logger",
    "JsonLogFormatter",
]

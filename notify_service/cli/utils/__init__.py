"""CLI utilities for running async operations and formatting output."""

from notify_service.cli.utils.async_runner import coro
from notify_service.cli.utils.formatters import (
    error,
    format_timestamp,
    header,
    info,
    key_values,
    section,
    styled_status,
    success,
    warning,
)
from notify_service.cli.utils.runtime import cli_service

__all__ = [
    "cli_service",
    "coro",
    "error",
    "format_timestamp",
    "header",
    "info",
    "key_values",
    "section",
    "styled_status",
    "success",
    "warning",
]

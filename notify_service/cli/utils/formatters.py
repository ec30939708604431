"""Output formatting utilities for CLI commands."""

from datetime import datetime
from typing import Any

import click

STATUS_COLORS = {
    "pending": "yellow",
    "processing": "blue",
    "sent": "green",
    "failed": "red",
}


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    """Print a header message in cyan bold."""
    click.secho(f"\n{message}", fg="cyan", bold=True)


def section(title: str) -> None:
    """Print a section divider."""
    click.secho(f"\n{'=' * 60}", fg="white", dim=True)
    click.secho(title, fg="white", bold=True)
    click.secho("=" * 60, fg="white", dim=True)


def styled_status(status: str) -> str:
    """Notification status colored by lifecycle stage."""
    return click.style(status, fg=STATUS_COLORS.get(status, "white"))


def format_timestamp(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def key_values(values: dict[str, Any], indent: int = 2) -> None:
    """Print aligned ``key: value`` lines."""
    if not values:
        return
    width = max(len(key) for key in values)
    for key, value in values.items():
        click.echo(f"{' ' * indent}{key.ljust(width)}  {value}")

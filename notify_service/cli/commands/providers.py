"""Provider CLI commands."""

import sys

import click

from notify_service.cli.utils import coro, error, header, info, success


@click.group(name="providers")
def providers() -> None:
    """Delivery provider commands."""


@providers.command(name="list")
def list_providers() -> None:
    """Show which channels are enabled."""
    from notify_service.core.settings import (
        get_email_settings,
        get_push_settings,
        get_sms_settings,
        get_webhook_settings,
    )

    header("Delivery Providers")
    channels = {
        "email": get_email_settings().enabled,
        "sms": get_sms_settings().enabled,
        "push": get_push_settings().enabled,
        "webhook": get_webhook_settings().enabled,
    }
    for name, enabled in channels.items():
        state = click.style("enabled", fg="green") if enabled else click.style("disabled", fg="red")
        click.echo(f"  {name:<8} {state}")


@providers.command(name="test")
@coro
async def test_providers() -> None:
    """Test connectivity of every enabled provider."""
    from notify_service.features.notifications.providers.registry import ProviderRegistry

    registry = ProviderRegistry.from_settings()
    try:
        results = await registry.test_connections()
    finally:
        await registry.aclose()

    header("Provider Connection Tests")
    if not results:
        info("No providers enabled")
        return

    failures = 0
    for name, result in results.items():
        if result.success:
            success(f"{name}: {result.message or 'ok'}")
        else:
            failures += 1
            error(f"{name}: {result.error}")

    if failures:
        sys.exit(1)

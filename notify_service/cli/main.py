"""Main CLI entry point for notify-service operator commands."""

import click

from notify_service import __version__
from notify_service.cli.commands import notifications, providers, worker
from notify_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="notify-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Notify Service CLI - operate the notification dispatch engine.

    \b
    Commands:
      worker     Run the dispatch processor
      send       Submit a notification
      status     Show one notification
      history    List notifications
      retry      Requeue a failed notification
      stats      Delivery statistics
      failed     List failed notifications
      purge      Delete old notifications
      providers  Provider listing and connection tests
      init-db    Create the database tables

    \b
    Quick Start:
      notify-service init-db
      notify-service send --type email --recipient a@b.com --message hi
      notify-service worker --batch-size 50
    """
    ctx.ensure_object(dict)


# Dispatch
cli.add_command(worker.worker)
cli.add_command(worker.init_db)

# Notifications
cli.add_command(notifications.send)
cli.add_command(notifications.status)
cli.add_command(notifications.history)
cli.add_command(notifications.retry)
cli.add_command(notifications.stats)
cli.add_command(notifications.failed)
cli.add_command(notifications.purge)

# Providers
cli.add_command(providers.providers)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()

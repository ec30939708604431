"""Notification CLI commands.

This module provides CLI commands for operating on notifications:
- Submit a notification and report its outcome
- Inspect status, history, failures and statistics
- Retry failed notifications
- Run the retention purge
"""

import json
import sys
from typing import Any

import click

from notify_service.cli.utils import (
    cli_service,
    coro,
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
from notify_service.core.exceptions import AppException
from notify_service.features.notifications.models import (
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from notify_service.features.notifications.service import TIMEFRAMES


def _parse_meta(pairs: tuple[str, ...]) -> dict[str, Any]:
    """Turn ``key=value`` pairs into a metadata dict; values are JSON when they parse."""
    metadata: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            msg = f"Expected key=value, got {pair!r}"
            raise click.BadParameter(msg, param_hint="--meta")
        try:
            metadata[key] = json.loads(raw)
        except json.JSONDecodeError:
            metadata[key] = raw
    return metadata


def _print_record(record: Any) -> None:
    key_values(
        {
            "ID": record.id,
            "Type": record.type,
            "Recipient": record.recipient,
            "Priority": record.priority,
            "Status": styled_status(record.status),
            "Retries": record.retry_count,
            "Created": format_timestamp(record.created_at),
            "Updated": format_timestamp(record.updated_at),
            "Sent": format_timestamp(record.sent_at),
            "Failed": format_timestamp(record.failed_at),
        }
    )


@click.command(name="send")
@click.option(
    "--type",
    "notification_type",
    required=True,
    help=f"Channel: {', '.join(t.value for t in NotificationType)}",
)
@click.option("--recipient", required=True, help="Email, E.164 phone number, device token or URL")
@click.option("--message", required=True, help="Message body")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in NotificationPriority]),
    default=NotificationPriority.NORMAL.value,
    show_default=True,
)
@click.option("--meta", "meta", multiple=True, help="Metadata entry as key=value (repeatable)")
@coro
async def send(
    notification_type: str,
    recipient: str,
    message: str,
    priority: str,
    meta: tuple[str, ...],
) -> None:
    """Submit a notification and dispatch it before exiting."""
    payload = {
        "type": notification_type,
        "recipient": recipient,
        "message": message,
        "priority": priority,
        "metadata": _parse_meta(meta),
    }

    try:
        async with cli_service() as service:
            result = await service.submit(payload)
        success(f"Notification queued: {result.id}")

        async with cli_service() as service:
            record = await service.status(result.id)
    except AppException as e:
        error(e.detail)
        sys.exit(1)

    if record.status == NotificationStatus.SENT.value:
        success(f"Delivered via {record.type}")
    elif record.status == NotificationStatus.FAILED.value:
        warning(f"Delivery failed: {record.error}")
    else:
        info(f"Status: {record.status}")


@click.command(name="status")
@click.argument("notification_id")
@coro
async def status(notification_id: str) -> None:
    """Show the current record for NOTIFICATION_ID."""
    try:
        async with cli_service() as service:
            record = await service.status(notification_id)
    except AppException as e:
        error(e.detail)
        sys.exit(1)

    header(f"Notification {record.id}")
    _print_record(record)

    if record.error:
        section("Error")
        click.echo(f"  {record.error}")
    if record.provider_response:
        section("Provider Response")
        click.echo(json.dumps(record.provider_response, indent=2, default=str))


@click.command(name="history")
@click.option("--type", "notification_type", default=None, help="Filter by type")
@click.option(
    "--status",
    "status_filter",
    type=click.Choice([s.value for s in NotificationStatus]),
    default=None,
    help="Filter by status",
)
@click.option("--recipient", default=None, help="Case-insensitive recipient substring")
@click.option("--limit", default=50, type=click.IntRange(1, 1000), show_default=True)
@click.option("--offset", default=0, type=click.IntRange(min=0), show_default=True)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
)
@coro
async def history(
    notification_type: str | None,
    status_filter: str | None,
    recipient: str | None,
    limit: int,
    offset: int,
    output_format: str,
) -> None:
    """List notifications, newest first."""
    filters = {
        "type": notification_type,
        "status": status_filter,
        "recipient": recipient,
        "limit": limit,
        "offset": offset,
    }
    try:
        async with cli_service() as service:
            page = await service.history(filters)
    except AppException as e:
        error(e.detail)
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(page.model_dump(mode="json"), indent=2))
        return

    header("Notification History")
    if not page.records:
        info("No notifications found")
        return

    click.echo()
    click.echo(f"  {'ID':<34} {'TYPE':<8} {'STATUS':<11} {'CREATED':<20} RECIPIENT")
    for record in page.records:
        click.echo(
            f"  {record.id:<34} {record.type:<8} "
            f"{styled_status(record.status)}{' ' * (11 - len(record.status))} "
            f"{format_timestamp(record.created_at):<20} {record.recipient}"
        )
    click.echo()
    success(f"Showing {len(page.records)}/{page.total} notifications (offset {page.offset})")


@click.command(name="retry")
@click.argument("notification_id")
@coro
async def retry(notification_id: str) -> None:
    """Requeue the failed notification NOTIFICATION_ID."""
    try:
        async with cli_service() as service:
            result = await service.retry(notification_id)
    except AppException as e:
        error(e.detail)
        sys.exit(1)

    success(f"Notification {result.id} requeued (retry #{result.retry_count})")


@click.command(name="stats")
@click.option(
    "--timeframe",
    type=click.Choice(list(TIMEFRAMES)),
    default="24h",
    show_default=True,
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
)
@coro
async def stats(timeframe: str, output_format: str) -> None:
    """Show delivery statistics for a trailing window."""
    async with cli_service() as service:
        statistics = await service.statistics(timeframe)

    if output_format == "json":
        click.echo(json.dumps(statistics.model_dump(mode="json"), indent=2))
        return

    header(f"Notification Statistics ({statistics.timeframe})")
    avg = statistics.avg_time_to_sent_seconds
    key_values(
        {
            "Total": statistics.total,
            "Success rate": f"{statistics.success_rate:.2f}%",
            "Failure rate": f"{statistics.failure_rate:.2f}%",
            "Avg time to sent": f"{avg:.2f}s" if avg is not None else "-",
        }
    )
    section("By Status")
    key_values(statistics.by_status)
    section("By Type")
    key_values(statistics.by_type)


@click.command(name="failed")
@click.option("--limit", default=100, type=click.IntRange(1, 1000), show_default=True)
@coro
async def failed(limit: int) -> None:
    """List failed notifications, most recent first."""
    async with cli_service() as service:
        records = await service.failed(limit=limit)

    header("Failed Notifications")
    if not records:
        success("No failed notifications")
        return

    click.echo()
    for record in records:
        click.echo(f"  ID: {record.id}")
        click.echo(f"    Type: {record.type}")
        click.echo(f"    Recipient: {record.recipient}")
        click.echo(f"    Error: {record.error}")
        click.echo(f"    Failed: {format_timestamp(record.failed_at)}")
        click.echo(f"    Retries: {record.retry_count}")
        click.echo()
    warning(f"{len(records)} failed notification(s)")


@click.command(name="purge")
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=None,
    help="Keep notifications newer than this many days (default: DISPATCH_RETENTION_DAYS)",
)
@click.confirmation_option(prompt="Delete old notifications?")
@coro
async def purge(days: int | None) -> None:
    """Delete notifications older than the retention period."""
    try:
        async with cli_service() as service:
            deleted = await service.purge(days)
    except AppException as e:
        error(e.detail)
        sys.exit(1)

    success(f"Purged {deleted} notification(s)")

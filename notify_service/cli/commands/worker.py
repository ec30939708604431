"""Dispatch worker and database commands."""

import asyncio
import signal
import sys

import click

from notify_service.cli.utils import coro, error, info, success, warning
from notify_service.core.settings import get_db_settings, get_dispatch_settings


@click.command(name="worker")
@click.option(
    "--batch-size",
    type=click.IntRange(1, 10_000),
    default=None,
    help="Notifications per tick (default: DISPATCH_BATCH_SIZE)",
)
@click.option(
    "--interval",
    type=click.FloatRange(min=0.01),
    default=None,
    help="Seconds between ticks (default: DISPATCH_INTERVAL_SECONDS)",
)
@click.option(
    "--drain/--no-drain",
    default=True,
    help="Dispatch everything still queued before exiting",
)
@coro
async def worker(batch_size: int | None, interval: float | None, drain: bool) -> None:
    """Run the dispatch processor until interrupted."""
    from notify_service.app.lifespan import NotificationRuntime

    overrides = {}
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    if interval is not None:
        overrides["interval_seconds"] = interval
    dispatch = get_dispatch_settings().model_copy(update=overrides)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Not supported on this platform; Ctrl+C still raises KeyboardInterrupt
            pass

    runtime = NotificationRuntime(dispatch_settings=dispatch, configure_logging=False)
    try:
        await runtime.start()
    except Exception as e:
        error(f"Failed to start worker: {e}")
        sys.exit(1)

    info(f"Worker running (batch size {dispatch.batch_size}, interval {dispatch.interval_seconds}s)")
    try:
        await stop_event.wait()
    finally:
        if drain and runtime.processor is not None and runtime.processor.queue_depth:
            warning(f"Draining {runtime.processor.queue_depth} queued notification(s)...")
        await runtime.stop(drain=drain)
    success("Worker stopped")


@click.command(name="init-db")
@coro
async def init_db() -> None:
    """Create the notification tables if they do not exist."""
    from notify_service.core.database.session import create_engine, init_models

    settings = get_db_settings()
    engine = create_engine(settings)
    try:
        await init_models(engine)
    except Exception as e:
        error(f"Database initialization failed: {e}")
        sys.exit(1)
    finally:
        await engine.dispose()

    success(f"Database ready: {engine.url.render_as_string(hide_password=True)}")

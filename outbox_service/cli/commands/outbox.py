"""Outbox management commands.

Example:bash
    # Create the outbox table / indexes
    outbox-service ensure-storage

    # Publish everything still PENDING
    outbox-service drain --backend mongo

    # Record counts per status
    outbox-service status --format json
"""

import json
import sys

import click

from outbox_service.cli.utils import coro, error, header, info, success, warning
from outbox_service.infra.outbox import OutboxStatus, create_outbox

backend_option = click.option(
    "--backend",
    type=click.Choice(["postgres", "mongo"]),
    default=None,
    help="Storage backend (defaults to OUTBOX_BACKEND).",
)


@click.command(name="ensure-storage")
@backend_option
@coro
async def ensure_storage(backend: str | None) -> None:
    """Create the outbox table (postgres) or indexes (mongo) if missing."""
    try:
        outbox = create_outbox(backend)
        try:
            await outbox.connect()
            await outbox.ensure_outbox_storage()
        finally:
            await outbox.close()
    except Exception as e:
        error(f"Failed to ensure outbox storage: {e}")
        sys.exit(1)

    success(f"Outbox storage ready ({outbox.backend}: {outbox.collection})")


@click.command()
@backend_option
@coro
async def drain(backend: str | None) -> None:
    """Run one drain pass over all PENDING outbox records."""
    try:
        outbox = create_outbox(backend)
        try:
            await outbox.connect()
            summary = await outbox.process_outbox()
        finally:
            await outbox.close()
    except Exception as e:
        error(f"Outbox drain failed: {e}")
        sys.exit(1)

    if summary.total == 0:
        info("No pending outbox records")
        return

    success(f"Published {summary.processed} record(s)")
    if summary.failed:
        warning(f"{summary.failed} record(s) marked FAILED")
    if summary.skipped:
        info(f"{summary.skipped} record(s) already handled by another drain pass")


@click.command()
@backend_option
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@coro
async def status(backend: str | None, output_format: str) -> None:
    """Show outbox record counts per status."""
    try:
        outbox = create_outbox(backend)
        try:
            await outbox.connect()
            counts = await outbox.count_by_status()
        finally:
            await outbox.close()
    except Exception as e:
        error(f"Failed to read outbox status: {e}")
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps({str(s): counts.get(s, 0) for s in OutboxStatus}))
        return

    header(f"Outbox status ({outbox.backend}: {outbox.collection})")
    for s in OutboxStatus:
        click.echo(f"  {s.value:<10} {counts.get(s, 0):>8}")

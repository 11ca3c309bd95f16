"""Main CLI entry point for outbox-service management commands."""

import click

from outbox_service.cli.commands import outbox
from outbox_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="outbox-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Outbox Service CLI - operate the transactional outbox.

    \b
    Commands:
      ensure-storage  Create the outbox table / indexes
      drain           Publish PENDING records to SQS once
      status          Record counts per status
    """
    ctx.ensure_object(dict)


cli.add_command(outbox.ensure_storage)
cli.add_command(outbox.drain)
cli.add_command(outbox.status)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()

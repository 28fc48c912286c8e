import click

from stockengine.domain.exceptions import DomainException
from stockengine.infrastructure.bootstrap import build_engine
from stockengine.infrastructure.cli.breaker_commands import breaker_status
from stockengine.infrastructure.cli.inventory_commands import (
    inventory_allocate,
    inventory_history,
    inventory_operations,
    inventory_release,
    inventory_replenish,
    inventory_reserve,
    inventory_show,
)
from stockengine.infrastructure.logging_config import configure_logging
from stockengine.infrastructure.settings import Settings


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """stockengine — inventory reservation engine"""
    try:
        settings = Settings.from_env()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    configure_logging(settings.env)
    ctx.obj = build_engine(settings)


@cli.group()
def inventory() -> None:
    """Reserve, release, allocate and replenish stock."""


@cli.group()
def breaker() -> None:
    """Inspect circuit breakers."""


# Register subcommands
inventory.add_command(inventory_allocate)
inventory.add_command(inventory_history)
inventory.add_command(inventory_operations)
inventory.add_command(inventory_release)
inventory.add_command(inventory_replenish)
inventory.add_command(inventory_reserve)
inventory.add_command(inventory_show)
breaker.add_command(breaker_status)

"""CLI commands for circuit breaker monitoring."""

from __future__ import annotations

import click

from stockengine.infrastructure.bootstrap import Engine


@click.command("status")
def breaker_status() -> None:
    """Show the state of every circuit breaker in this process."""
    engine = click.get_current_context().find_object(Engine)
    statuses = engine.breakers.status()

    if not statuses:
        click.echo("No circuit breakers in use.")
        return

    click.echo(f"{'Circuit':<24} {'State':<10} {'Failures':>8} {'Threshold':>10} {'Recovery':>9}")
    click.echo("-" * 65)
    for status in statuses.values():
        click.echo(
            f"{status.name:<24} {status.state.value:<10} {status.failure_count:>8} "
            f"{status.failure_threshold:>10} {status.recovery_timeout:>8.0f}s"
        )
    click.echo()
    click.echo("healthy" if engine.breakers.healthy() else "degraded")

"""CLI commands for inventory operations."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import click

from stockengine.application.show_inventory import (
    ShowInventoryHandler,
    ShowInventoryHistoryHandler,
)
from stockengine.domain.exceptions import DomainException
from stockengine.infrastructure.bootstrap import Engine


def _engine() -> Engine:
    return click.get_current_context().find_object(Engine)


def _finish(engine: Engine, ok: bool, operation_id: str, success_message: str) -> None:
    """Echo on success; otherwise fail with the reason from the audit trail."""
    if ok:
        click.echo(success_message)
        return

    reason = "unknown"
    for record in reversed(engine.recorder.list_operations()):
        if record.operation_id == operation_id:
            reason = record.reason or record.outcome.value
            if record.detail:
                reason = f"{reason} ({record.detail})"
            break
    raise click.ClickException(f"Operation {operation_id} failed: {reason}")


@click.command("show")
def inventory_show() -> None:
    """Show current inventory levels."""
    lines = ShowInventoryHandler(_engine().inventory_repo).handle()

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(f"{'Inventory':<20} {'On hand':>8} {'Reserved':>10} {'Available':>10} {'Version':>8}")
    click.echo("-" * 60)
    for line in lines:
        click.echo(
            f"{line.inventory_id:<20} {line.on_hand:>8} {line.reserved:>10} "
            f"{line.available:>10} {line.version:>8}"
        )


@click.command("history")
@click.option("--id", "inventory_id", required=True, help="Inventory record ID.")
def inventory_history(inventory_id: str) -> None:
    """Show the event stream of one inventory record."""
    handler = ShowInventoryHistoryHandler(_engine().inventory_repo)

    try:
        events = handler.handle(inventory_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not events:
        click.echo(f"No events for '{inventory_id}'.")
        return

    for e in events:
        click.echo(
            f"v{e.version:<4} {e.occurred_at}  {e.kind:<12} {e.amount:>6}  "
            f"order={e.order_id or '-'}  {e.detail}"
        )


@click.command("reserve")
@click.option("--id", "inventory_id", required=True, help="Inventory record ID.")
@click.option("--amount", required=True, type=int, help="Units to reserve.")
@click.option("--order", "order_id", required=True, help="Order the stock is held for.")
@click.option("--expires-in", type=float, default=None, help="Hours until the hold expires.")
@click.option("--correlation-id", default=None, help="Idempotency key.")
def inventory_reserve(
    inventory_id: str,
    amount: int,
    order_id: str,
    expires_in: float | None,
    correlation_id: str | None,
) -> None:
    """Reserve stock for an order."""
    engine = _engine()
    operation_id = correlation_id or uuid.uuid4().hex
    expires_at = (
        datetime.now(timezone.utc) + timedelta(hours=expires_in)
        if expires_in is not None
        else None
    )
    ok = engine.reservations.reserve(
        inventory_id, amount, order_id, expires_at=expires_at, correlation_id=operation_id
    )
    _finish(engine, ok, operation_id, f"Reserved {amount} of '{inventory_id}' for order {order_id}.")


@click.command("release")
@click.option("--id", "inventory_id", required=True, help="Inventory record ID.")
@click.option("--amount", required=True, type=int, help="Units to release.")
@click.option("--order", "order_id", default=None, help="Order the stock was held for.")
@click.option("--correlation-id", default=None, help="Idempotency key.")
def inventory_release(
    inventory_id: str, amount: int, order_id: str | None, correlation_id: str | None
) -> None:
    """Release reserved stock back to available."""
    engine = _engine()
    operation_id = correlation_id or uuid.uuid4().hex
    ok = engine.releases.release(inventory_id, amount, order_id, correlation_id=operation_id)
    _finish(engine, ok, operation_id, f"Released up to {amount} of '{inventory_id}'.")


@click.command("allocate")
@click.option("--id", "inventory_id", required=True, help="Inventory record ID.")
@click.option("--amount", required=True, type=int, help="Units to ship.")
@click.option("--order", "order_id", required=True, help="Order being shipped.")
@click.option("--shipment", "shipment_id", default=None, help="Shipment ID.")
@click.option("--correlation-id", default=None, help="Idempotency key.")
def inventory_allocate(
    inventory_id: str,
    amount: int,
    order_id: str,
    shipment_id: str | None,
    correlation_id: str | None,
) -> None:
    """Allocate reserved stock to a shipment."""
    engine = _engine()
    operation_id = correlation_id or uuid.uuid4().hex
    ok = engine.allocations.allocate(
        inventory_id, amount, order_id, shipment_id=shipment_id, correlation_id=operation_id
    )
    _finish(engine, ok, operation_id, f"Allocated {amount} of '{inventory_id}' to order {order_id}.")


@click.command("replenish")
@click.option("--id", "inventory_id", required=True, help="Inventory record ID.")
@click.option("--amount", required=True, type=int, help="Units received.")
@click.option("--source", default="manual", show_default=True, help="Where the supply came from.")
@click.option("--correlation-id", default=None, help="Idempotency key.")
def inventory_replenish(
    inventory_id: str, amount: int, source: str, correlation_id: str | None
) -> None:
    """Add supply to on-hand stock."""
    engine = _engine()
    operation_id = correlation_id or uuid.uuid4().hex
    ok = engine.replenishments.replenish(
        inventory_id, amount, source=source, correlation_id=operation_id
    )
    _finish(engine, ok, operation_id, f"Replenished '{inventory_id}' with {amount} from {source}.")


@click.command("operations")
@click.option("--limit", type=int, default=20, show_default=True, help="Most recent N records.")
def inventory_operations(limit: int) -> None:
    """Show the operation audit trail."""
    records = _engine().recorder.list_operations()[-limit:]

    if not records:
        click.echo("No operations recorded.")
        return

    for r in records:
        click.echo(
            f"{r.timestamp.isoformat(timespec='seconds')}  {r.kind.value:<10} {r.amount:>6}  "
            f"{r.outcome.value:<12} {r.reason or '':<22} {r.operation_id or '-'}"
        )

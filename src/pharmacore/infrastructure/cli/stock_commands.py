"""CLI commands for stock levels and the movement ledger."""

from __future__ import annotations

from datetime import datetime, timezone

import click

from pharmacore.application.dto import MovementDTO
from pharmacore.domain.exceptions import DomainException
from pharmacore.domain.model.movement import MovementFilter, MovementReason, MovementType
from pharmacore.infrastructure.bootstrap import (
    available_stock_handler,
    inventory_value_handler,
    low_stock_handler,
    movement_history_handler,
    record_movement_handler,
    set_stock_handler,
    show_stock_handler,
)

_actor_option = click.option("--actor", default="cli", show_default=True, help="Who performs the action.")


def _echo_movement(dto: MovementDTO) -> None:
    click.echo(
        f"{dto.type} of {dto.quantity} for '{dto.product_id}': "
        f"{dto.stock_before} -> {dto.stock_after} ({dto.reason}, {dto.reference})"
    )
    if dto.total_cost is not None:
        click.echo(f"  cost {dto.unit_cost} per unit, {dto.total_cost} in total")
    if dto.batch_number or dto.expiry_date:
        click.echo(f"  batch {dto.batch_number or '-'}, expires {dto.expiry_date or '-'}")


def _record(**kwargs) -> None:
    try:
        dto = record_movement_handler().handle(**kwargs)
    except DomainException as exc:
        raise click.ClickException(str(exc))
    _echo_movement(dto)


@click.command("set")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int, help="Counted quantity on hand.")
@click.option("--threshold", type=int, default=None, help="Low-stock alert threshold.")
@_actor_option
def stock_set(product_id: str, quantity: int, threshold: int | None, actor: str) -> None:
    """Set the on-hand quantity for a product (opens the record if needed)."""
    try:
        line = set_stock_handler().handle(product_id, quantity, actor=actor, threshold_alert=threshold)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Stock for '{line.product_name}' set to {line.on_hand}")


@click.command("show")
def stock_show() -> None:
    """Show current stock levels."""
    lines = show_stock_handler().handle()

    if not lines:
        click.echo("No stock records found.")
        return

    click.echo(
        f"{'ID':<8} {'Product':<24} {'On hand':>8} {'Reserved':>9} {'Available':>10} {'Alert':>6}"
    )
    click.echo("-" * 70)
    for line in lines:
        flag = " LOW" if line.is_low else ""
        click.echo(
            f"{line.product_id:<8} {line.product_name:<24} {line.on_hand:>8} "
            f"{line.reserved:>9} {line.available:>10} {line.threshold_alert:>6}{flag}"
        )


@click.command("available")
@click.option("--product", "product_id", required=True, help="Product ID.")
def stock_available(product_id: str) -> None:
    """Print the units that can still be promised."""
    click.echo(available_stock_handler().handle(product_id))


@click.command("receive")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int)
@click.option(
    "--type",
    "movement_type",
    type=click.Choice(["in", "return", "transfer"]),
    default="in",
    show_default=True,
)
@click.option("--reason", type=click.Choice([r.value for r in MovementReason]), default=None)
@click.option("--reference", default=None, help="Delivery note, return slip, ...")
@click.option("--notes", default=None)
@click.option("--unit-cost", default=None, help="Purchase cost per unit.")
@click.option("--batch", "batch_number", default=None, help="Supplier batch number.")
@click.option("--expiry", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="Batch expiry date.")
@_actor_option
def stock_receive(
    product_id: str,
    quantity: int,
    movement_type: str,
    reason: str | None,
    reference: str | None,
    notes: str | None,
    unit_cost: str | None,
    batch_number: str | None,
    expiry: datetime | None,
    actor: str,
) -> None:
    """Record units coming in."""
    _record(
        product_id=product_id,
        type=movement_type,
        quantity=quantity,
        actor=actor,
        reason=reason,
        reference=reference,
        notes=notes,
        unit_cost=unit_cost,
        batch_number=batch_number,
        expiry_date=expiry.date() if expiry else None,
    )


@click.command("writeoff")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int)
@click.option(
    "--type",
    "movement_type",
    type=click.Choice(["out", "damage", "expiry"]),
    default="damage",
    show_default=True,
)
@click.option("--reason", type=click.Choice([r.value for r in MovementReason]), default=None)
@click.option("--reference", default=None)
@click.option("--notes", default=None)
@_actor_option
def stock_writeoff(
    product_id: str,
    quantity: int,
    movement_type: str,
    reason: str | None,
    reference: str | None,
    notes: str | None,
    actor: str,
) -> None:
    """Record units leaving outside of an order (damage, expiry, theft)."""
    _record(
        product_id=product_id,
        type=movement_type,
        quantity=quantity,
        actor=actor,
        reason=reason,
        reference=reference,
        notes=notes,
    )


@click.command("adjust")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int)
@click.option("--direction", type=click.Choice(["increase", "decrease"]), required=True)
@click.option("--reason", type=click.Choice([r.value for r in MovementReason]), default=None)
@click.option("--reference", default=None)
@click.option("--notes", default=None)
@_actor_option
def stock_adjust(
    product_id: str,
    quantity: int,
    direction: str,
    reason: str | None,
    reference: str | None,
    notes: str | None,
    actor: str,
) -> None:
    """Record a signed adjustment."""
    _record(
        product_id=product_id,
        type="adjustment",
        quantity=quantity,
        actor=actor,
        reason=reason,
        reference=reference,
        notes=notes,
        direction=direction,
    )


@click.command("history")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--type", "movement_type", type=click.Choice([t.value for t in MovementType]), default=None)
@click.option("--reason", type=click.Choice([r.value for r in MovementReason]), default=None)
@click.option("--reference", default=None)
@click.option("--from", "date_from", type=click.DateTime(), default=None)
@click.option("--to", "date_to", type=click.DateTime(), default=None)
def stock_history(
    product_id: str,
    movement_type: str | None,
    reason: str | None,
    reference: str | None,
    date_from: datetime | None,
    date_to: datetime | None,
) -> None:
    """Show the movement ledger of a product, newest first."""
    filters = MovementFilter(
        type=MovementType(movement_type) if movement_type else None,
        reason=MovementReason(reason) if reason else None,
        reference=reference,
        date_from=date_from.replace(tzinfo=timezone.utc) if date_from else None,
        date_to=date_to.replace(tzinfo=timezone.utc) if date_to else None,
    )
    try:
        movements = movement_history_handler().handle(product_id, filters)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not movements:
        click.echo("No movements found.")
        return

    click.echo(f"{'When':<22} {'Type':<11} {'Qty':>5} {'Before':>7} {'After':>7}  {'Reason':<21} Reference")
    click.echo("-" * 100)
    for m in movements:
        click.echo(
            f"{m.created_at:<22} {m.type:<11} {m.quantity:>5} {m.stock_before:>7} "
            f"{m.stock_after:>7}  {m.reason:<21} {m.reference}"
        )


@click.command("low")
def stock_low() -> None:
    """List active products at or below their alert threshold."""
    alerts = low_stock_handler().handle()

    if not alerts:
        click.echo("No low-stock products.")
        return

    for alert in alerts:
        click.echo(
            f"{alert.alert:<13} {alert.product_id:<8} {alert.product_name:<24} "
            f"{alert.on_hand:>6} / {alert.threshold_alert}"
        )


@click.command("value")
@click.option("--at", "at", type=click.DateTime(), default=None, help="Point in time (UTC).")
def stock_value(at: datetime | None) -> None:
    """Reconstruct stock per product from the ledger."""
    valuations = inventory_value_handler().handle(at.replace(tzinfo=timezone.utc) if at else None)

    if not valuations:
        click.echo("No movements recorded.")
        return

    click.echo(f"{'ID':<8} {'In':>8} {'Out':>8} {'On hand':>8} {'Cost':>18} {'Avg cost':>16}")
    click.echo("-" * 71)
    for v in valuations:
        click.echo(
            f"{v.product_id:<8} {v.total_in:>8} {v.total_out:>8} {v.on_hand:>8} "
            f"{v.total_cost:>18} {v.average_cost:>16}"
        )

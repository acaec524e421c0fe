"""CLI commands for the Order aggregate."""

from __future__ import annotations

import click

from pharmacore.application.dto import CreateOrderRequest, OrderDTO, OrderItemSpec
from pharmacore.domain.exceptions import DomainException
from pharmacore.infrastructure.bootstrap import (
    create_order_handler,
    expire_reservations_handler,
    expired_reservations_handler,
    list_orders_handler,
    show_order_handler,
    transition_order_handler,
)


def _parse_items(raw: str, prescriptions: dict[str, str]) -> list[OrderItemSpec]:
    """Parse 'P001:3,P002:5' into OrderItemSpec list."""
    specs: list[OrderItemSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductID:Quantity'."
            )
        product_id, qty_str = pair.rsplit(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{product_id}'."
            )
        product_id = product_id.strip()
        specs.append(
            OrderItemSpec(
                product_id=product_id,
                quantity=qty,
                prescription=prescriptions.get(product_id),
            )
        )
    return specs


def _parse_prescriptions(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated 'P001=RX-123' options."""
    result: dict[str, str] = {}
    for value in values:
        if "=" not in value:
            raise click.BadParameter(
                f"Invalid prescription '{value}'. Expected 'ProductID=Reference'."
            )
        product_id, ref = value.split("=", 1)
        result[product_id.strip()] = ref.strip()
    return result


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number} (#{dto.id})  status={dto.status}  type={dto.order_type}")
    click.echo(f"Customer: {dto.customer_id}   Delivery: {dto.delivery_method}")
    click.echo(f"Payment:  {dto.payment_method} ({dto.payment_status})")
    click.echo(f"Created:  {dto.created_at}")
    if dto.expires_at:
        click.echo(f"Expires:  {dto.expires_at}")
    click.echo()
    click.echo(f"  {'Product':<24} {'Qty':>5} {'Price TTC':>14} {'Discount':>12} {'Total TTC':>14}")
    click.echo(f"  {'-'*73}")
    for item in dto.items:
        click.echo(
            f"  {item.product_name:<24} {item.quantity:>5} {item.price_ttc:>14} "
            f"{item.discount:>12} {item.total_ttc:>14}"
        )
    click.echo(f"  {'-'*73}")
    click.echo(f"  {'Subtotal HT':<40} {dto.subtotal_ht:>32}")
    click.echo(f"  {'Tax':<40} {dto.tax_total:>32}")
    if dto.coupon_code:
        click.echo(f"  {'Coupon ' + dto.coupon_code:<40} {'':>32}")
    click.echo(f"  {'Discounts':<40} {dto.discount_total:>32}")
    click.echo(f"  {'Shipping':<40} {dto.shipping_cost:>32}")
    click.echo(f"  {'Order Total TTC':<40} {dto.total_ttc:>32}")
    click.echo()
    click.echo("History:")
    for change in dto.history:
        who = f" by {change.changed_by}" if change.changed_by else ""
        why = f" ({change.reason})" if change.reason else ""
        click.echo(f"  {change.changed_at}  {change.status}{who}{why}")


@click.command("create")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--items", required=True, help="Items as 'ProductID:Qty,ProductID:Qty'.")
@click.option(
    "--type",
    "order_type",
    type=click.Choice(["reservation", "commande", "vente_pos"]),
    default="commande",
    show_default=True,
)
@click.option("--delivery", type=click.Choice(["pickup", "delivery"]), default="pickup", show_default=True)
@click.option(
    "--payment-method",
    type=click.Choice(["cash", "orange_money", "mtn_money", "card", "bank_transfer"]),
    default="cash",
    show_default=True,
)
@click.option("--paid", is_flag=True, default=False, help="Payment already collected.")
@click.option("--transaction-id", default=None, help="Mobile money / card transaction ID.")
@click.option("--coupon", default=None, help="Coupon code.")
@click.option("--coupon-value", default=None, help="Coupon value (percent or amount).")
@click.option("--coupon-type", type=click.Choice(["percentage", "fixed"]), default="percentage")
@click.option("--prescription", "prescriptions", multiple=True, help="'ProductID=Reference'.")
@click.option("--counter", is_flag=True, default=False, help="Complete a POS sale at the counter.")
@click.option("--notes", default=None)
@click.option("--actor", default="cli", show_default=True, help="Who performs the action.")
def order_create(
    customer: str,
    items: str,
    order_type: str,
    delivery: str,
    payment_method: str,
    paid: bool,
    transaction_id: str | None,
    coupon: str | None,
    coupon_value: str | None,
    coupon_type: str,
    prescriptions: tuple[str, ...],
    counter: bool,
    notes: str | None,
    actor: str,
) -> None:
    """Create a new order (reserves stock, or sells at the counter)."""
    specs = _parse_items(items, _parse_prescriptions(prescriptions))
    request = CreateOrderRequest(
        customer_id=customer,
        items=specs,
        order_type=order_type,
        delivery_method=delivery,
        payment_method=payment_method,
        payment_status="paid" if paid else "pending",
        transaction_id=transaction_id,
        coupon_code=coupon,
        coupon_value=coupon_value,
        coupon_type=coupon_type,
        complete_at_counter=counter,
        notes=notes,
    )

    try:
        dto = create_order_handler().handle(request, actor=actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} created  (status={dto.status})")
    click.echo()
    _display_order(dto)


@click.command("show")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to display.")
def order_show(order_id: int) -> None:
    """Show details of an existing order."""
    try:
        dto = show_order_handler().handle(order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("list")
@click.option("--status", default=None, help="Only orders in this status.")
@click.option("--type", "order_type", default=None, help="Only orders of this type.")
def order_list(status: str | None, order_type: str | None) -> None:
    """List orders, newest first."""
    try:
        orders = list_orders_handler().handle(status=status, order_type=order_type)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not orders:
        click.echo("No orders found.")
        return

    click.echo(f"{'ID':<6} {'Number':<20} {'Customer':<14} {'Type':<12} {'Status':<10} {'Total':>16}")
    click.echo("-" * 83)
    for dto in orders:
        click.echo(
            f"{dto.id:<6} {dto.order_number:<20} {dto.customer_id:<14} "
            f"{dto.order_type:<12} {dto.status:<10} {dto.total_ttc:>16}"
        )


@click.command("transition")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option(
    "--to",
    "new_status",
    required=True,
    type=click.Choice(
        ["confirmed", "preparing", "ready", "shipped", "delivered", "cancelled", "refunded"]
    ),
    help="Target status.",
)
@click.option("--note", default=None, help="Reason recorded in the history.")
@click.option("--actor", default="cli", show_default=True, help="Who performs the action.")
def order_transition(order_id: int, new_status: str, note: str | None, actor: str) -> None:
    """Move an order to a new status (applies its stock effect)."""
    try:
        dto = transition_order_handler().handle(order_id, new_status, actor=actor, note=note)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} is now {dto.status}.")


@click.command("expired")
def order_expired() -> None:
    """List pending reservations whose hold has run out."""
    orders = expired_reservations_handler().handle()

    if not orders:
        click.echo("No expired reservations.")
        return

    for dto in orders:
        click.echo(f"{dto.id:<6} {dto.order_number:<20} {dto.customer_id:<14} expired {dto.expires_at}")


@click.command("expire")
@click.option("--actor", default="cli", show_default=True, help="Who performs the action.")
def order_expire(actor: str) -> None:
    """Cancel expired reservations and release their stock."""
    try:
        cancelled = expire_reservations_handler().handle(actor=actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    for dto in cancelled:
        click.echo(f"Order {dto.order_number} cancelled (reservation expired).")
    click.echo(f"{len(cancelled)} reservation(s) expired.")

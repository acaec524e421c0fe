"""Data Transfer Objects crossing the application boundary.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass

from pharmacore.domain.model.movement import StockMovement
from pharmacore.domain.model.order import Order
from pharmacore.domain.model.stock import StockLevel


@dataclass(frozen=True)
class OrderItemSpec:
    """Input: one requested line."""

    product_id: str
    quantity: int
    discount: str | None = None
    prescription: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CreateOrderRequest:
    """Input: a new order as submitted by a counter or an online client.

    Enumerations are given by their stored value (e.g. ``"vente_pos"``,
    ``"orange_money"``); amounts are decimal strings.
    """

    customer_id: str
    items: list[OrderItemSpec]
    order_type: str = "commande"
    delivery_method: str = "pickup"
    payment_method: str = "cash"
    payment_status: str = "pending"
    transaction_id: str | None = None
    coupon_code: str | None = None
    coupon_value: str | None = None
    coupon_type: str = "percentage"
    complete_at_counter: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class OrderLineItemDTO:
    product_id: str
    product_name: str
    quantity: int
    price_ttc: str  # formatted, e.g. "5000.00 GNF"
    price_ht: str
    discount: str
    total_ttc: str
    reserved_quantity: int


@dataclass(frozen=True)
class StatusChangeDTO:
    status: str
    changed_at: str
    changed_by: str | None
    reason: str | None


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: int
    order_number: str
    customer_id: str
    order_type: str
    delivery_method: str
    status: str
    items: list[OrderLineItemDTO]
    subtotal_ht: str
    subtotal_ttc: str
    tax_total: str
    discount_total: str
    shipping_cost: str
    total_ttc: str
    payment_method: str
    payment_status: str
    coupon_code: str | None
    history: list[StatusChangeDTO]
    created_at: str
    expires_at: str | None = None


@dataclass(frozen=True)
class MovementDTO:
    id: str
    product_id: str
    type: str
    reason: str
    quantity: int
    stock_before: int
    stock_after: int
    reference: str
    created_by: str
    created_at: str
    notes: str | None
    unit_cost: str | None = None
    total_cost: str | None = None
    batch_number: str | None = None
    expiry_date: str | None = None


@dataclass(frozen=True)
class StockLineDTO:
    product_id: str
    product_name: str
    on_hand: int
    reserved: int
    available: int
    threshold_alert: int
    is_low: bool


@dataclass(frozen=True)
class LowStockDTO:
    product_id: str
    product_name: str
    on_hand: int
    threshold_alert: int
    alert: str  # "out_of_stock" | "low_stock"


@dataclass(frozen=True)
class ValuationDTO:
    product_id: str
    total_in: int
    total_out: int
    on_hand: int
    total_cost: str
    average_cost: str


# --- Mapping -----------------------------------------------------------------


def _ts(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


def order_to_dto(order: Order) -> OrderDTO:
    totals = order.totals
    return OrderDTO(
        id=order.id,  # type: ignore[arg-type]
        order_number=order.order_number,  # type: ignore[arg-type]
        customer_id=order.customer_id,
        order_type=order.order_type.value,
        delivery_method=order.delivery_method.value,
        status=order.status.value,
        items=[
            OrderLineItemDTO(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity.value,
                price_ttc=str(item.price_ttc),
                price_ht=str(item.price_ht),
                discount=str(item.discount),
                total_ttc=str(item.total_ttc),
                reserved_quantity=item.reserved_quantity,
            )
            for item in order.items
        ],
        subtotal_ht=str(totals.subtotal_ht),
        subtotal_ttc=str(totals.subtotal_ttc),
        tax_total=str(totals.tax_total),
        discount_total=str(totals.discount_total),
        shipping_cost=str(totals.shipping_cost),
        total_ttc=str(totals.total_ttc),
        payment_method=order.payment.method.value,
        payment_status=order.payment.status.value,
        coupon_code=order.coupon.code if order.coupon else None,
        history=[
            StatusChangeDTO(
                status=change.status.value,
                changed_at=_ts(change.changed_at),
                changed_by=change.changed_by,
                reason=change.reason,
            )
            for change in order.status_history
        ],
        created_at=_ts(order.created_at),
        expires_at=_ts(order.expires_at) if order.expires_at else None,
    )


def movement_to_dto(movement: StockMovement) -> MovementDTO:
    return MovementDTO(
        id=movement.id,
        product_id=movement.product_id,
        type=movement.type.value,
        reason=movement.reason.value,
        quantity=movement.quantity,
        stock_before=movement.stock_before,
        stock_after=movement.stock_after,
        reference=movement.reference,
        created_by=movement.created_by,
        created_at=_ts(movement.created_at),
        notes=movement.notes,
        unit_cost=str(movement.unit_cost) if movement.unit_cost is not None else None,
        total_cost=str(movement.total_cost) if movement.total_cost is not None else None,
        batch_number=movement.batch_number,
        expiry_date=movement.expiry_date.isoformat() if movement.expiry_date else None,
    )


def stock_to_dto(level: StockLevel, product_name: str) -> StockLineDTO:
    return StockLineDTO(
        product_id=level.product_id,
        product_name=product_name,
        on_hand=level.on_hand,
        reserved=level.reserved,
        available=level.available,
        threshold_alert=level.threshold_alert,
        is_low=level.is_low,
    )

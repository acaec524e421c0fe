"""Order aggregate and its status state machine.

The Order is an aggregate root that owns its line items and its status
history.  Status changes go through ``transition_to()``, which checks the
fixed transition table and records one history entry per change.  The
state machine has no inventory knowledge; the fulfillment orchestrator
decides what each transition does to stock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum

from pharmacore.domain.exceptions import InvalidTransition, ValidationError
from pharmacore.domain.model.pricing import Coupon, LineInput, OrderTotals
from pharmacore.domain.model.value_objects import Money, Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


class OrderType(Enum):
    RESERVATION = "reservation"
    COMMANDE = "commande"
    POS_SALE = "vente_pos"


class DeliveryMethod(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentMethod(Enum):
    CASH = "cash"
    ORANGE_MONEY = "orange_money"
    MTN_MONEY = "mtn_money"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# ---------------------------------------------------------------------------
# Transitions not listed here are rejected
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset(
        {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)

MAX_LINE_ITEMS = 50

# How long a reservation holds its stock before the expiry sweep cancels it
RESERVATION_HOLD = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StatusChange:
    status: OrderStatus
    changed_at: datetime
    changed_by: str | None = None
    reason: str | None = None


@dataclass
class Payment:
    method: PaymentMethod
    amount: Money
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None

    def mark_paid(self, at: datetime | None = None) -> None:
        self.status = PaymentStatus.PAID
        self.paid_at = at or _utcnow()

    def mark_refunded(self, at: datetime | None = None) -> None:
        self.status = PaymentStatus.REFUNDED
        self.refunded_at = at or _utcnow()


@dataclass
class OrderItem:
    """A line with its price snapshot taken at order-creation time.

    ``reserved_quantity`` is how much of this line is still held in the
    product's reservation counter: the full quantity after creation, zero
    once the units leave the shelf or the reservation is released.
    """

    product_id: str
    product_name: str
    quantity: Quantity
    price_ttc: Money  # locked at order-creation time
    tax_rate: Decimal
    price_ht: Money
    total_ht: Money
    total_ttc: Money
    discount: Money
    prescription: str | None = None
    notes: str | None = None
    reserved_quantity: int = 0

    def pricing_input(self) -> LineInput:
        return LineInput(
            price_ttc=self.price_ttc,
            tax_rate=self.tax_rate,
            quantity=self.quantity.value,
            discount=self.discount,
        )


@dataclass
class Order:
    """Aggregate root for customer orders.

    Use the ``Order.create()`` factory for new orders.  The ``__init__`` is
    intentionally simple so the store can reconstitute persisted orders
    without re-validating.
    """

    id: int | None
    order_number: str | None
    customer_id: str
    order_type: OrderType
    delivery_method: DeliveryMethod
    items: list[OrderItem]
    payment: Payment
    totals: OrderTotals
    coupon: Coupon | None = None
    status: OrderStatus = OrderStatus.PENDING
    status_history: list[StatusChange] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    expires_at: datetime | None = None
    notes: str | None = None
    version: int = 0

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        customer_id: str,
        order_type: OrderType,
        delivery_method: DeliveryMethod,
        items: list[OrderItem],
        payment: Payment,
        totals: OrderTotals,
        actor: str | None,
        coupon: Coupon | None = None,
        status: OrderStatus = OrderStatus.PENDING,
        note: str | None = None,
        notes: str | None = None,
        at: datetime | None = None,
    ) -> Order:
        """Create a new order with its initial history entry."""
        if not customer_id or not customer_id.strip():
            raise ValidationError("Customer is required")
        if not items:
            raise ValidationError("Order must contain at least one item")
        if len(items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")

        created_at = at or _utcnow()
        expires_at = None
        if order_type == OrderType.RESERVATION:
            expires_at = created_at + RESERVATION_HOLD
        order = Order(
            id=None,
            order_number=None,
            customer_id=customer_id.strip(),
            order_type=order_type,
            delivery_method=delivery_method,
            items=list(items),
            payment=payment,
            totals=totals,
            coupon=coupon,
            status=status,
            created_at=created_at,
            expires_at=expires_at,
            notes=notes,
        )
        order.status_history.append(
            StatusChange(status=status, changed_at=created_at, changed_by=actor, reason=note)
        )
        return order

    # --- State machine ------------------------------------------------------

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(
        self,
        new_status: OrderStatus,
        actor: str | None,
        note: str | None = None,
        at: datetime | None = None,
    ) -> StatusChange:
        """Move to ``new_status`` if the table allows it and record it."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(self.status.value, new_status.value)

        change = StatusChange(
            status=new_status,
            changed_at=at or _utcnow(),
            changed_by=actor,
            reason=note or f"Status changed from {self.status.value} to {new_status.value}",
        )
        self.status = new_status
        self.status_history.append(change)
        return change

    # --- Computed properties --------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired(self, at: datetime) -> bool:
        """A pending reservation whose hold has run out."""
        return (
            self.order_type == OrderType.RESERVATION
            and self.status == OrderStatus.PENDING
            and self.expires_at is not None
            and self.expires_at <= at
        )

    @property
    def reference(self) -> str:
        """Correlation id written on ledger entries for this order."""
        return f"Order {self.order_number or self.id}"

    def pricing_inputs(self) -> list[LineInput]:
        return [item.pricing_input() for item in self.items]

"""Unit tests for the Order aggregate and its status state machine."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import product as pairs

import pytest

from pharmacore.domain.exceptions import InvalidTransition, ValidationError
from pharmacore.domain.model.order import (
    ALLOWED_TRANSITIONS,
    MAX_LINE_ITEMS,
    RESERVATION_HOLD,
    DeliveryMethod,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    Payment,
    PaymentMethod,
)
from pharmacore.domain.model.value_objects import Money, Quantity
from pharmacore.domain.service.order_totals import calculate_totals


def _make_item(qty: int = 1, price: str = "5000") -> OrderItem:
    """Helper to build a valid line item."""
    return OrderItem(
        product_id="P001",
        product_name="Paracetamol 500mg",
        quantity=Quantity(qty),
        price_ttc=Money.of(price),
        tax_rate=Decimal("0"),
        price_ht=Money.of(price),
        total_ht=Money.of(price) * qty,
        total_ttc=Money.of(price) * qty,
        discount=Money.zero(),
    )


def _make_order(
    items: list[OrderItem] | None = None,
    customer: str = "C-1",
    order_type: OrderType = OrderType.COMMANDE,
    at: datetime | None = None,
) -> Order:
    items = items if items is not None else [_make_item()]
    totals = calculate_totals([i.pricing_input() for i in items], Money.zero())
    return Order.create(
        customer_id=customer,
        order_type=order_type,
        delivery_method=DeliveryMethod.PICKUP,
        items=items,
        payment=Payment(PaymentMethod.CASH, totals.total_ttc),
        totals=totals,
        actor="alice",
        at=at,
    )


class TestOrderCreation:

    def test_happy_path(self):
        order = _make_order([_make_item(qty=2)])
        assert order.status == OrderStatus.PENDING
        assert order.id is None  # assigned by the store
        assert order.totals.total_ttc == Money.of("10000")

    def test_initial_history_entry(self):
        order = _make_order()
        assert len(order.status_history) == 1
        assert order.status_history[0].status == OrderStatus.PENDING
        assert order.status_history[0].changed_by == "alice"

    def test_empty_order_rejected(self):
        with pytest.raises(ValidationError, match="at least one item"):
            _make_order([])

    def test_customer_required(self):
        with pytest.raises(ValidationError, match="Customer is required"):
            _make_order(customer="  ")

    def test_too_many_items_rejected(self):
        with pytest.raises(ValidationError, match=f"Maximum {MAX_LINE_ITEMS}"):
            _make_order([_make_item() for _ in range(MAX_LINE_ITEMS + 1)])


class TestTransitions:

    @pytest.mark.parametrize(
        "path",
        [
            ["confirmed", "preparing", "ready", "shipped", "delivered", "refunded"],
            ["confirmed", "preparing", "ready", "delivered"],
            ["cancelled"],
            ["confirmed", "cancelled"],
            ["confirmed", "preparing", "ready", "cancelled"],
        ],
    )
    def test_allowed_paths(self, path):
        order = _make_order()
        for status in path:
            order.transition_to(OrderStatus(status), actor="bob")
        assert order.status == OrderStatus(path[-1])
        assert len(order.status_history) == len(path) + 1

    def test_every_pair_outside_the_table_is_rejected(self):
        for source, target in pairs(OrderStatus, OrderStatus):
            if target in ALLOWED_TRANSITIONS[source]:
                continue
            order = _make_order()
            order.status = source
            with pytest.raises(InvalidTransition):
                order.transition_to(target, actor="bob")
            assert order.status == source
            assert len(order.status_history) == 1

    def test_terminal_statuses(self):
        order = _make_order()
        order.transition_to(OrderStatus.CANCELLED, actor="bob")
        assert order.is_terminal
        with pytest.raises(InvalidTransition, match="cancelled -> confirmed"):
            order.transition_to(OrderStatus.CONFIRMED, actor="bob")

    def test_history_records_actor_and_reason(self):
        order = _make_order()
        change = order.transition_to(OrderStatus.CANCELLED, actor="bob", note="Client absent")
        assert order.status_history[-1] is change
        assert change.changed_by == "bob"
        assert change.reason == "Client absent"

    def test_default_reason(self):
        order = _make_order()
        change = order.transition_to(OrderStatus.CONFIRMED, actor=None)
        assert change.reason == "Status changed from pending to confirmed"


class TestReservationExpiry:

    CREATED = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def test_reservation_holds_for_seven_days(self):
        order = _make_order(order_type=OrderType.RESERVATION, at=self.CREATED)
        assert RESERVATION_HOLD == timedelta(days=7)
        assert order.expires_at == self.CREATED + timedelta(days=7)

    @pytest.mark.parametrize("order_type", [OrderType.COMMANDE, OrderType.POS_SALE])
    def test_other_orders_never_expire(self, order_type):
        order = _make_order(order_type=order_type, at=self.CREATED)
        assert order.expires_at is None
        assert not order.is_expired(self.CREATED + timedelta(days=365))

    def test_expired_once_the_hold_runs_out(self):
        order = _make_order(order_type=OrderType.RESERVATION, at=self.CREATED)
        assert not order.is_expired(order.expires_at - timedelta(seconds=1))
        assert order.is_expired(order.expires_at)

    def test_only_pending_reservations_expire(self):
        order = _make_order(order_type=OrderType.RESERVATION, at=self.CREATED)
        order.transition_to(OrderStatus.CONFIRMED, "bob")
        assert not order.is_expired(self.CREATED + timedelta(days=30))

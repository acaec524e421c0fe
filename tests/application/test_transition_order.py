"""Integration tests for the TransitionOrder use case."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from pharmacore.application.create_order import CreateOrderHandler
from pharmacore.application.dto import CreateOrderRequest, OrderItemSpec
from pharmacore.application.transition_order import TransitionOrderHandler
from pharmacore.domain.events import OrderStatusChanged
from pharmacore.domain.exceptions import (
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    ValidationError,
)
from pharmacore.domain.model.movement import MovementReason, MovementType
from pharmacore.domain.model.order import OrderStatus
from pharmacore.domain.service.fulfillment_orchestrator import FulfillmentOrchestrator
from tests.fakes import DELIVERY_FEE, FAST_RETRY, RecordingSink, make_product, seeded_store


def _setup(on_hand: int = 10):
    store = seeded_store(
        [make_product("P001"), make_product("P002", "Doliprane sirop", price="2500")],
        {"P001": on_hand, "P002": 30},
    )
    sink = RecordingSink()
    create = CreateOrderHandler(store.unit_of_work, DELIVERY_FEE, FAST_RETRY)
    transition = TransitionOrderHandler(
        store.unit_of_work, DELIVERY_FEE, FAST_RETRY, on_committed=sink
    )
    return store, create, transition, sink


def _order(create, *items, **kwargs) -> int:
    specs = [OrderItemSpec(pid, qty) for pid, qty in items] or [OrderItemSpec("P001", 4)]
    dto = create.handle(CreateOrderRequest(customer_id="C-1", items=specs, **kwargs), actor="a")
    return dto.id


class TestFulfillmentFlow:

    def test_confirm_then_prepare_ships_the_reserved_units(self):
        store, create, transition, _ = _setup()
        order_id = _order(create, ("P001", 4))

        transition.handle(order_id, "confirmed", actor="pharmacist")
        # confirmation alone does not move stock
        assert store.stock_level("P001").reserved == 4
        dto = transition.handle(order_id, "preparing", actor="pharmacist")

        assert dto.status == "preparing"
        level = store.stock_level("P001")
        assert (level.on_hand, level.reserved) == (6, 0)
        sales = [m for m in store.movements_of("P001") if m.type == MovementType.OUT]
        assert len(sales) == 1
        assert (sales[0].stock_before, sales[0].stock_after) == (10, 6)
        assert sales[0].reason == MovementReason.SALE
        assert sales[0].created_by == "pharmacist"

    def test_full_lifecycle_history(self):
        store, create, transition, sink = _setup()
        order_id = _order(create, ("P001", 1))
        for status in ("confirmed", "preparing", "ready", "shipped", "delivered"):
            transition.handle(order_id, status, actor="bob")

        dto = transition.handle(order_id, "refunded", actor="manager", note="Produit defectueux")
        assert [h.status for h in dto.history] == [
            "pending", "confirmed", "preparing", "ready", "shipped", "delivered", "refunded",
        ]
        assert dto.history[-1].reason == "Produit defectueux"
        assert len(sink.of_type(OrderStatusChanged)) == 6
        # refunds do not restock
        assert store.stock_level("P001").on_hand == 9

    def test_refund_flips_a_paid_payment(self):
        _, create, transition, _ = _setup()
        order_id = _order(create, ("P001", 1), payment_status="paid")
        for status in ("confirmed", "preparing", "ready", "delivered"):
            transition.handle(order_id, status, actor="bob")
        dto = transition.handle(order_id, "refunded", actor="bob")
        assert dto.payment_status == "refunded"

    def test_multi_line_order_ships_every_line(self):
        store, create, transition, _ = _setup()
        order_id = _order(create, ("P001", 2), ("P002", 5))
        transition.handle(order_id, "confirmed", actor="bob")
        transition.handle(order_id, "preparing", actor="bob")
        assert store.stock_level("P001").on_hand == 8
        assert store.stock_level("P002").on_hand == 25
        assert store.stock_level("P002").reserved == 0


class TestCancellation:

    def test_cancel_pending_releases_the_reservation(self):
        store, create, transition, _ = _setup()
        order_id = _order(create, ("P001", 4))
        movements_before = len(store.movements_of("P001"))

        dto = transition.handle(order_id, "cancelled", actor="bob")

        assert dto.status == "cancelled"
        assert len(dto.history) == 2
        level = store.stock_level("P001")
        assert (level.on_hand, level.reserved) == (10, 0)
        assert len(store.movements_of("P001")) == movements_before

    def test_cancel_confirmed_releases(self):
        store, create, transition, _ = _setup()
        order_id = _order(create, ("P001", 4))
        transition.handle(order_id, "confirmed", actor="bob")
        transition.handle(order_id, "cancelled", actor="bob")
        assert store.stock_level("P001").reserved == 0

    def test_cancel_after_shipping_out_does_not_touch_other_reservations(self):
        store, create, transition, _ = _setup()
        shipped = _order(create, ("P001", 3))
        other = _order(create, ("P001", 2))
        transition.handle(shipped, "confirmed", actor="bob")
        transition.handle(shipped, "preparing", actor="bob")

        transition.handle(shipped, "cancelled", actor="bob")

        level = store.stock_level("P001")
        assert (level.on_hand, level.reserved) == (7, 2)
        assert store.order(other).items[0].reserved_quantity == 2


class TestRejections:

    def test_transition_outside_the_table_changes_nothing(self):
        store, create, transition, sink = _setup()
        order_id = _order(create, ("P001", 4))

        with pytest.raises(InvalidTransition):
            transition.handle(order_id, "shipped", actor="bob")

        order = store.order(order_id)
        assert order.status.value == "pending"
        assert len(order.status_history) == 1
        assert store.stock_level("P001").reserved == 4
        assert sink.events == []

    def test_prepare_fails_when_the_shelf_no_longer_holds_the_units(self):
        store, create, transition, sink = _setup()
        order_id = _order(create, ("P001", 4))
        transition.handle(order_id, "confirmed", actor="bob")
        # a recount found only 3 units; they stay promised to this order
        current = store.stock_level("P001")
        store._stock["P001"] = replace(current, on_hand=3, reserved=3)
        shelf = store.stock_level("P001")
        movements_before = len(store.movements_of("P001"))
        events_before = len(sink.events)

        with pytest.raises(InsufficientStock):
            transition.handle(order_id, "preparing", actor="bob")

        order = store.order(order_id)
        assert order.status == OrderStatus.CONFIRMED
        assert len(order.status_history) == 2
        assert order.items[0].reserved_quantity == 4
        assert store.stock_level("P001") == shelf
        assert len(store.movements_of("P001")) == movements_before
        assert len(sink.events) == events_before

    def test_terminal_order_cannot_move(self):
        _, create, transition, _ = _setup()
        order_id = _order(create, ("P001", 1))
        transition.handle(order_id, "cancelled", actor="bob")
        with pytest.raises(InvalidTransition):
            transition.handle(order_id, "confirmed", actor="bob")

    def test_unknown_order(self):
        _, _, transition, _ = _setup()
        with pytest.raises(OrderNotFound):
            transition.handle(999, "confirmed", actor="bob")

    def test_unknown_status(self):
        _, create, transition, _ = _setup()
        order_id = _order(create)
        with pytest.raises(ValidationError, match="Invalid status"):
            transition.handle(order_id, "teleported", actor="bob")


class TestClock:

    def test_fixed_clock_stamps_history_and_movements(self):
        store, create, transition, _ = _setup()
        order_id = _order(create, ("P001", 4))
        transition.handle(order_id, "confirmed", actor="bob")
        at = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)

        with store.unit_of_work() as uow:
            FulfillmentOrchestrator(uow, DELIVERY_FEE, now=at).transition(
                order_id, OrderStatus.PREPARING, "bob"
            )
            uow.commit()

        assert store.order(order_id).status_history[-1].changed_at == at
        sale = store.movements_of("P001")[-1]
        assert (sale.type, sale.created_at) == (MovementType.OUT, at)

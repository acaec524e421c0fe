"""Integration tests for the reservation expiry query and sweep."""

from datetime import datetime, timedelta, timezone

from pharmacore.application.create_order import CreateOrderHandler
from pharmacore.application.dto import CreateOrderRequest, OrderItemSpec
from pharmacore.application.expire_reservations import (
    EXPIRY_NOTE,
    ExpiredReservationsHandler,
    ExpireReservationsHandler,
)
from pharmacore.application.transition_order import TransitionOrderHandler
from pharmacore.domain.events import OrderStatusChanged
from pharmacore.domain.model.order import OrderStatus
from tests.fakes import DELIVERY_FEE, FAST_RETRY, RecordingSink, seeded_store

LATER = timedelta(days=8)


def _setup():
    store = seeded_store(stock={"P001": 10})
    create = CreateOrderHandler(store.unit_of_work, DELIVERY_FEE, FAST_RETRY)
    return store, create


def _reserve(create, qty: int, order_type: str = "reservation") -> int:
    return create.handle(
        CreateOrderRequest("C-1", [OrderItemSpec("P001", qty)], order_type=order_type),
        actor="a",
    ).id


class TestExpiredReservations:

    def test_lists_only_pending_reservations_past_their_hold(self):
        store, create = _setup()
        reservation = _reserve(create, 2)
        _reserve(create, 1, order_type="commande")
        confirmed = _reserve(create, 1)
        TransitionOrderHandler(store.unit_of_work, DELIVERY_FEE, FAST_RETRY).handle(
            confirmed, "confirmed", actor="bob"
        )

        query = ExpiredReservationsHandler(store.unit_of_work)
        assert query.handle() == []
        expired = query.handle(at=datetime.now(timezone.utc) + LATER)
        assert [dto.id for dto in expired] == [reservation]
        assert expired[0].expires_at is not None

    def test_hold_ends_exactly_at_expires_at(self):
        store, create = _setup()
        order_id = _reserve(create, 2)
        expires_at = store.order(order_id).expires_at

        query = ExpiredReservationsHandler(store.unit_of_work)
        assert query.handle(at=expires_at - timedelta(seconds=1)) == []
        assert [dto.id for dto in query.handle(at=expires_at)] == [order_id]


class TestExpireReservations:

    def test_sweep_cancels_and_releases_the_reservation(self):
        store, create = _setup()
        order_id = _reserve(create, 4)
        movements_before = len(store.movements_of("P001"))
        sink = RecordingSink()
        at = datetime.now(timezone.utc) + LATER

        cancelled = ExpireReservationsHandler(
            store.unit_of_work, DELIVERY_FEE, FAST_RETRY, on_committed=sink
        ).handle(actor="cron", at=at)

        assert [dto.id for dto in cancelled] == [order_id]
        order = store.order(order_id)
        assert order.status == OrderStatus.CANCELLED
        assert order.items[0].reserved_quantity == 0
        last = order.status_history[-1]
        assert (last.changed_by, last.reason, last.changed_at) == ("cron", EXPIRY_NOTE, at)
        level = store.stock_level("P001")
        assert (level.on_hand, level.reserved) == (10, 0)
        assert len(store.movements_of("P001")) == movements_before
        [event] = sink.of_type(OrderStatusChanged)
        assert (event.from_status, event.to_status) == ("pending", "cancelled")

    def test_sweep_leaves_live_orders_alone(self):
        store, create = _setup()
        fresh = _reserve(create, 2)
        commande = _reserve(create, 3, order_type="commande")

        cancelled = ExpireReservationsHandler(store.unit_of_work, DELIVERY_FEE, FAST_RETRY).handle(
            actor="cron"
        )

        assert cancelled == []
        assert store.order(fresh).status == OrderStatus.PENDING
        assert store.order(commande).status == OrderStatus.PENDING
        assert store.stock_level("P001").reserved == 5

    def test_reservation_confirmed_after_the_scan_is_skipped(self):
        store, create = _setup()
        order_id = _reserve(create, 2)
        transition = TransitionOrderHandler(store.unit_of_work, DELIVERY_FEE, FAST_RETRY)

        class ConfirmDuringSweep:
            """Unit-of-work factory that confirms the order right after the scan."""

            def __init__(self):
                self.calls = 0

            def __call__(self):
                self.calls += 1
                if self.calls == 2:
                    transition.handle(order_id, "confirmed", actor="bob")
                return store.unit_of_work()

        cancelled = ExpireReservationsHandler(
            ConfirmDuringSweep(), DELIVERY_FEE, FAST_RETRY
        ).handle(actor="cron", at=datetime.now(timezone.utc) + LATER)

        assert cancelled == []
        assert store.order(order_id).status == OrderStatus.CONFIRMED
        assert store.stock_level("P001").reserved == 2

    def test_second_sweep_finds_nothing(self):
        store, create = _setup()
        _reserve(create, 2)
        sweep = ExpireReservationsHandler(store.unit_of_work, DELIVERY_FEE, FAST_RETRY)
        at = datetime.now(timezone.utc) + LATER

        assert len(sweep.handle(actor="cron", at=at)) == 1
        assert sweep.handle(actor="cron", at=at) == []

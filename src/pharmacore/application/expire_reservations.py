"""Application services: reservation expiry.

A reservation holds its units until ``expires_at``.  Once that passes
while the order is still pending, the sweep cancels it through the
normal transition path, which gives the reserved units back.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from pharmacore.application.dto import OrderDTO, order_to_dto
from pharmacore.application.retrying import RetryPolicy, run_unit_of_work
from pharmacore.domain.events import EventSink, discard
from pharmacore.domain.model.order import Order, OrderStatus, OrderType
from pharmacore.domain.model.value_objects import Money
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.fulfillment_orchestrator import FulfillmentOrchestrator

logger = structlog.get_logger(__name__)

EXPIRY_NOTE = "Reservation expired"


def _expired(uow: UnitOfWork, at: datetime) -> list[Order]:
    pending = uow.orders.list(status=OrderStatus.PENDING, order_type=OrderType.RESERVATION)
    return sorted(
        (order for order in pending if order.is_expired(at)),
        key=lambda order: (order.expires_at, order.id),
    )


class ExpiredReservationsHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(self, at: datetime | None = None) -> list[OrderDTO]:
        """Pending reservations past their hold, oldest expiry first."""
        at = at or datetime.now(timezone.utc)
        with self._uow_factory() as uow:
            orders = _expired(uow, at)
        return [order_to_dto(order) for order in orders]


class ExpireReservationsHandler:

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        delivery_fee: Money,
        retry: RetryPolicy | None = None,
        on_committed: EventSink = discard,
    ) -> None:
        self._uow_factory = uow_factory
        self._delivery_fee = delivery_fee
        self._retry = retry or RetryPolicy()
        self._on_committed = on_committed

    def handle(self, actor: str, at: datetime | None = None) -> list[OrderDTO]:
        """Cancel every expired reservation, one unit of work each.

        An order confirmed or cancelled after the scan is left alone.
        """
        at = at or datetime.now(timezone.utc)
        with self._uow_factory() as uow:
            candidates = [order.id for order in _expired(uow, at)]

        cancelled = []
        for order_id in candidates:

            def work(uow: UnitOfWork, order_id: int = order_id) -> Order | None:
                order = uow.orders.get_by_id(order_id)
                if order is None or not order.is_expired(at):
                    return None
                orchestrator = FulfillmentOrchestrator(uow, self._delivery_fee, now=at)
                order, _ = orchestrator.transition(
                    order_id, OrderStatus.CANCELLED, actor, EXPIRY_NOTE
                )
                return order

            order = run_unit_of_work(self._uow_factory, work, self._retry, self._on_committed)
            if order is None:
                logger.info("reservation_expiry_skipped", order_id=order_id)
                continue
            logger.info(
                "reservation_expired",
                order_id=order.id,
                order_number=order.order_number,
                expires_at=order.expires_at.isoformat(),
            )
            cancelled.append(order_to_dto(order))

        logger.info("reservations_swept", scanned=len(candidates), cancelled=len(cancelled))
        return cancelled

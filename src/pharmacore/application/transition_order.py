"""Application service: Transition Order use case.

One status change, its inventory effect and its history entry commit in
a single unit of work.  When another transition of the same order wins
the race, the retry reloads the order and re-checks the transition table
against its new status.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from pharmacore.application.create_order import parse_choice
from pharmacore.application.dto import OrderDTO, order_to_dto
from pharmacore.application.retrying import RetryPolicy, run_unit_of_work
from pharmacore.domain.events import EventSink, discard
from pharmacore.domain.exceptions import InvalidTransition
from pharmacore.domain.model.order import Order, OrderStatus
from pharmacore.domain.model.value_objects import Money
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.fulfillment_orchestrator import FulfillmentOrchestrator

logger = structlog.get_logger(__name__)


class TransitionOrderHandler:

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

    def handle(
        self,
        order_id: int,
        new_status: str,
        actor: str,
        note: str | None = None,
    ) -> OrderDTO:
        target = parse_choice(OrderStatus, new_status, "status")

        def work(uow: UnitOfWork) -> Order:
            orchestrator = FulfillmentOrchestrator(uow, self._delivery_fee)
            order, _ = orchestrator.transition(order_id, target, actor, note)
            return order

        try:
            order = run_unit_of_work(self._uow_factory, work, self._retry, self._on_committed)
        except InvalidTransition as exc:
            logger.info(
                "transition_rejected",
                order_id=order_id,
                from_status=exc.from_status,
                to_status=exc.to_status,
            )
            raise

        logger.info(
            "order_transitioned",
            order_id=order.id,
            order_number=order.order_number,
            status=order.status.value,
            actor=actor,
        )
        return order_to_dto(order)

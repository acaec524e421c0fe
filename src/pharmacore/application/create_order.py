"""Application service: Create Order use case.

Maps the request onto the fulfillment orchestrator and runs it in one
unit of work: the order and the inventory effect of every line commit
together or not at all.  A conflicting concurrent reservation makes the
whole unit retry against fresh stock.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TypeVar

import structlog

from pharmacore.application.dto import CreateOrderRequest, OrderDTO, order_to_dto
from pharmacore.application.retrying import RetryPolicy, run_unit_of_work
from pharmacore.domain.events import EventSink, discard
from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.order import (
    DeliveryMethod,
    Order,
    OrderType,
    PaymentMethod,
    PaymentStatus,
)
from pharmacore.domain.model.pricing import Coupon, CouponType
from pharmacore.domain.model.value_objects import Money
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.fulfillment_orchestrator import (
    FulfillmentOrchestrator,
    LineRequest,
    OrderRequest,
)

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Enum)


def parse_choice(enum_cls: type[E], value: str, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}' (expected one of: {choices})")


def _decimal(value: str, field: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValidationError(f"Invalid {field}: {value!r}")


class CreateOrderHandler:

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

    def handle(self, request: CreateOrderRequest, actor: str) -> OrderDTO:
        order_request = self._to_domain(request)

        def work(uow: UnitOfWork) -> Order:
            orchestrator = FulfillmentOrchestrator(uow, self._delivery_fee)
            return orchestrator.create_order(order_request, actor)

        order = run_unit_of_work(self._uow_factory, work, self._retry, self._on_committed)
        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            order_type=order.order_type.value,
            status=order.status.value,
            lines=len(order.items),
        )
        return order_to_dto(order)

    # --- Mapping --------------------------------------------------------------

    def _to_domain(self, request: CreateOrderRequest) -> OrderRequest:
        coupon = None
        if request.coupon_code:
            if request.coupon_value is None:
                raise ValidationError(f"Coupon '{request.coupon_code}' has no value")
            coupon = Coupon(
                code=request.coupon_code,
                value=_decimal(request.coupon_value, "coupon value"),
                type=parse_choice(CouponType, request.coupon_type, "coupon type"),
            )

        currency = self._delivery_fee.currency
        lines = [
            LineRequest(
                product_id=spec.product_id,
                quantity=spec.quantity,
                discount=Money.of(spec.discount, currency) if spec.discount else None,
                prescription=spec.prescription,
                notes=spec.notes,
            )
            for spec in request.items
        ]
        return OrderRequest(
            customer_id=request.customer_id,
            lines=lines,
            order_type=parse_choice(OrderType, request.order_type, "order type"),
            delivery_method=parse_choice(
                DeliveryMethod, request.delivery_method, "delivery method"
            ),
            payment_method=parse_choice(PaymentMethod, request.payment_method, "payment method"),
            payment_status=parse_choice(PaymentStatus, request.payment_status, "payment status"),
            transaction_id=request.transaction_id,
            coupon=coupon,
            complete_at_counter=request.complete_at_counter,
            notes=request.notes,
        )

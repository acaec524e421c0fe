"""Application service: Show Order / List Orders use cases (queries)."""

from __future__ import annotations

from collections.abc import Callable

from pharmacore.application.create_order import parse_choice
from pharmacore.application.dto import OrderDTO, order_to_dto
from pharmacore.domain.exceptions import OrderNotFound
from pharmacore.domain.model.order import OrderStatus, OrderType
from pharmacore.domain.repository.unit_of_work import UnitOfWork


class ShowOrderHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(self, order_id: int) -> OrderDTO:
        with self._uow_factory() as uow:
            order = uow.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order_to_dto(order)


class ListOrdersHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(
        self,
        status: str | None = None,
        order_type: str | None = None,
    ) -> list[OrderDTO]:
        """Orders matching the filters, newest first."""
        status_filter = parse_choice(OrderStatus, status, "status") if status else None
        type_filter = parse_choice(OrderType, order_type, "order type") if order_type else None
        with self._uow_factory() as uow:
            orders = uow.orders.list(status=status_filter, order_type=type_filter)
        return [order_to_dto(order) for order in orders]

"""Abstract repository for Order aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from pharmacore.domain.model.order import Order, OrderStatus, OrderType


class OrderRepository(ABC):

    @abstractmethod
    def next_identity(self, on: date) -> tuple[int, str]:
        """Reserve a unique order ID and the day's order number."""

    @abstractmethod
    def get_by_id(self, order_id: int) -> Order | None:
        """Return a private copy of an order, or None if not found."""

    @abstractmethod
    def list(
        self,
        status: OrderStatus | None = None,
        order_type: OrderType | None = None,
    ) -> list[Order]:
        """Return orders matching the filters, newest first."""

    @abstractmethod
    def save(self, order: Order) -> None:
        """Stage a new or updated order.

        Updates are checked against the version the order was loaded at.
        """

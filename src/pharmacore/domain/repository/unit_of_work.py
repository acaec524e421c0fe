"""Unit of work port.

A unit of work groups every write of one business operation (stock
counters, ledger entries, the order) and commits them together or not at
all.  Reads inside the unit see its own staged writes.

Usage::

    with uow_factory() as uow:
        ...
        uow.commit()

Leaving the block without ``commit()`` discards everything.  Domain
services append events to ``uow.events``; they are only meant to be
published once ``commit()`` has returned.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pharmacore.domain.events import DomainEvent
from pharmacore.domain.repository.movement_repository import MovementRepository
from pharmacore.domain.repository.order_repository import OrderRepository
from pharmacore.domain.repository.product_repository import ProductRepository
from pharmacore.domain.repository.stock_repository import StockRepository


class UnitOfWork(ABC):
    products: ProductRepository
    stock: StockRepository
    movements: MovementRepository
    orders: OrderRepository
    events: list[DomainEvent]

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    @abstractmethod
    def commit(self) -> None:
        """Apply all staged writes atomically.

        Raises Contention if any record changed since it was read, or
        LedgerInconsistency if staged movements do not chain from the
        committed on-hand.  Nothing is applied in either case.
        """

    @abstractmethod
    def rollback(self) -> None:
        """Discard staged writes.  Safe to call after commit."""

"""Abstract repository for the append-only stock movement ledger."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pharmacore.domain.model.movement import StockMovement


class MovementRepository(ABC):

    @abstractmethod
    def append(self, movement: StockMovement) -> None:
        """Stage a movement.  There is no update or delete."""

    @abstractmethod
    def for_product(self, product_id: str) -> list[StockMovement]:
        """Committed and staged movements of one product, oldest first."""

    @abstractmethod
    def list_all(self) -> list[StockMovement]:
        """Every movement, oldest first."""

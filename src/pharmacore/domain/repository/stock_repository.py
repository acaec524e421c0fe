"""Abstract repository for per-product stock counters."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pharmacore.domain.model.stock import StockLevel


class StockRepository(ABC):

    @abstractmethod
    def get(self, product_id: str) -> StockLevel | None:
        """Return the current counters for a product, or None.

        Inside a unit of work this reflects writes staged earlier in the
        same unit.
        """

    @abstractmethod
    def list_all(self) -> list[StockLevel]:
        """Return every stock record."""

    @abstractmethod
    def compare_and_set(self, expected: StockLevel, new: StockLevel) -> None:
        """Stage ``new`` as the successor of ``expected``.

        Raises Contention if ``expected`` is no longer the latest state of
        the record.  The committed version is checked again at commit time.
        """

    @abstractmethod
    def add(self, level: StockLevel) -> None:
        """Stage a brand-new stock record."""

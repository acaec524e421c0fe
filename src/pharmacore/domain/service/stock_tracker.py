"""Domain service: Stock Quantity Tracker.

Owns the on-hand / reserved counters of every product.  Each operation
is a single read-modify-write staged through
``StockRepository.compare_and_set``: the new snapshot is only accepted if
the record has not moved since it was read, and the commit checks the
version once more.  Reservations never touch the ledger; physical
changes are paired with a ledger entry by ``InventoryPosting``.
"""

from __future__ import annotations

from pharmacore.domain.exceptions import ProductNotFound
from pharmacore.domain.model.stock import StockLevel
from pharmacore.domain.repository.stock_repository import StockRepository


class StockTracker:

    def __init__(self, stock_repo: StockRepository) -> None:
        self._stock_repo = stock_repo

    # --- Reads ----------------------------------------------------------------

    def level(self, product_id: str) -> StockLevel:
        level = self._stock_repo.get(product_id)
        if level is None:
            raise ProductNotFound(product_id)
        return level

    def available(self, product_id: str) -> int:
        """Units that can be freshly promised; 0 when there is no record."""
        level = self._stock_repo.get(product_id)
        return level.available if level is not None else 0

    # --- Mutations ------------------------------------------------------------

    def reserve(self, product_id: str, quantity: int) -> StockLevel:
        current = self.level(product_id)
        return self._swap(current, current.reserve(quantity))

    def release(self, product_id: str, quantity: int) -> StockLevel:
        current = self.level(product_id)
        return self._swap(current, current.release(quantity))

    def commit_outbound(
        self, product_id: str, quantity: int, held: int = 0
    ) -> tuple[StockLevel, StockLevel]:
        """Remove units from the shelf, consuming ``held`` reserved units."""
        current = self.level(product_id)
        return current, self._swap(current, current.remove(quantity, held))

    def commit_inbound(self, product_id: str, quantity: int) -> tuple[StockLevel, StockLevel]:
        current = self.level(product_id)
        return current, self._swap(current, current.add(quantity))

    def open(self, product_id: str, threshold_alert: int) -> StockLevel:
        """Create an empty stock record for a product."""
        level = StockLevel(product_id=product_id, on_hand=0, threshold_alert=threshold_alert)
        self._stock_repo.add(level)
        return level

    def _swap(self, current: StockLevel, new: StockLevel) -> StockLevel:
        self._stock_repo.compare_and_set(current, new)
        return new

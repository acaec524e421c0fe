"""Domain service: Inventory Ledger.

Append-only record of every on-hand change.  ``record()`` refuses a
movement whose ``stock_before`` is not the tracker's current on-hand,
which is how a lost update shows up; that error is never patched over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pharmacore.domain.exceptions import LedgerInconsistency
from pharmacore.domain.model.movement import MovementFilter, StockMovement
from pharmacore.domain.model.value_objects import Money, round2
from pharmacore.domain.repository.movement_repository import MovementRepository
from pharmacore.domain.service.stock_tracker import StockTracker


@dataclass(frozen=True)
class StockValuation:
    """Point-in-time reconstruction of one product's stock.

    ``total_cost`` sums the purchase cost of inbound movements that carry
    one; receipts recorded without a cost add nothing to it.
    """

    product_id: str
    total_in: int
    total_out: int
    total_cost: Money = field(default_factory=Money.zero)

    @property
    def on_hand(self) -> int:
        return self.total_in - self.total_out

    @property
    def average_cost(self) -> Money:
        if self.total_in == 0:
            return Money.zero(self.total_cost.currency)
        return Money(round2(self.total_cost.amount / self.total_in), self.total_cost.currency)


class InventoryLedger:

    def __init__(self, movement_repo: MovementRepository, tracker: StockTracker) -> None:
        self._movement_repo = movement_repo
        self._tracker = tracker

    def record(self, movement: StockMovement) -> StockMovement:
        actual = self._tracker.level(movement.product_id).on_hand
        if movement.stock_before != actual:
            raise LedgerInconsistency(movement.product_id, movement.stock_before, actual)
        self._movement_repo.append(movement)
        return movement

    def history(
        self, product_id: str, filters: MovementFilter | None = None
    ) -> list[StockMovement]:
        """Matching movements of a product, newest first."""
        filters = filters or MovementFilter()
        matching = [m for m in self._movement_repo.for_product(product_id) if filters.matches(m)]
        # stable sort: equal timestamps keep the later append first
        return sorted(reversed(matching), key=lambda m: m.created_at, reverse=True)

    def value_at(self, at: datetime) -> list[StockValuation]:
        """Aggregate inbound/outbound quantities per product up to ``at``."""
        totals: dict[str, StockValuation] = {}
        for movement in self._movement_repo.list_all():
            if movement.created_at > at:
                continue
            entry = totals.get(movement.product_id) or StockValuation(movement.product_id, 0, 0)
            if movement.delta >= 0:
                total_in, total_out = entry.total_in + movement.delta, entry.total_out
            else:
                total_in, total_out = entry.total_in, entry.total_out - movement.delta
            cost = entry.total_cost
            if movement.total_cost is not None:
                cost = cost + movement.total_cost
            totals[movement.product_id] = StockValuation(
                movement.product_id, total_in, total_out, cost
            )
        return [totals[pid] for pid in sorted(totals)]

    def replay(self, product_id: str) -> int:
        """Chain all movements of a product from zero; return the on-hand.

        Raises LedgerInconsistency at the first movement that does not
        start where the previous one ended.
        """
        running = 0
        for movement in self._movement_repo.for_product(product_id):
            if movement.stock_before != running:
                raise LedgerInconsistency(product_id, movement.stock_before, running)
            running = movement.stock_after
        return running

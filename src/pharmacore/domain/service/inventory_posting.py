"""Domain service: pairs every physical stock change with its ledger entry.

Both halves are staged in the same unit of work, so they commit together
or not at all.  The movement is built from the counters as read before
the change and checked by the ledger before the tracker writes.
"""

from __future__ import annotations

from datetime import date, datetime

from pharmacore.domain.events import LowStockDetected, StockMovementRecorded
from pharmacore.domain.exceptions import InsufficientStock, ValidationError
from pharmacore.domain.model.movement import MovementReason, MovementType, StockMovement
from pharmacore.domain.model.stock import StockLevel
from pharmacore.domain.model.value_objects import Money
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.inventory_ledger import InventoryLedger
from pharmacore.domain.service.stock_tracker import StockTracker


class InventoryPosting:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow
        self.tracker = StockTracker(uow.stock)
        self.ledger = InventoryLedger(uow.movements, self.tracker)

    def post_outbound(
        self,
        product_id: str,
        quantity: int,
        reason: MovementReason,
        reference: str,
        actor: str,
        held: int = 0,
        type: MovementType = MovementType.OUT,
        notes: str | None = None,
        at: datetime | None = None,
    ) -> StockMovement:
        before = self.tracker.level(product_id)
        if quantity > before.on_hand:
            raise InsufficientStock(product_id, quantity, before.on_hand)
        movement = StockMovement.outbound(
            product_id=product_id,
            quantity=quantity,
            stock_before=before.on_hand,
            reason=reason,
            reference=reference,
            created_by=actor,
            type=type,
            notes=notes,
            created_at=at,
        )
        self.ledger.record(movement)
        _, after = self.tracker.commit_outbound(product_id, quantity, held=held)
        self._announce(movement, before, after)
        return movement

    def post_inbound(
        self,
        product_id: str,
        quantity: int,
        reason: MovementReason,
        reference: str,
        actor: str,
        type: MovementType = MovementType.IN,
        notes: str | None = None,
        unit_cost: Money | None = None,
        batch_number: str | None = None,
        expiry_date: date | None = None,
        at: datetime | None = None,
    ) -> StockMovement:
        before = self.tracker.level(product_id)
        movement = StockMovement.inbound(
            product_id=product_id,
            quantity=quantity,
            stock_before=before.on_hand,
            reason=reason,
            reference=reference,
            created_by=actor,
            type=type,
            notes=notes,
            unit_cost=unit_cost,
            batch_number=batch_number,
            expiry_date=expiry_date,
            created_at=at,
        )
        self.ledger.record(movement)
        _, after = self.tracker.commit_inbound(product_id, quantity)
        self._announce(movement, before, after)
        return movement

    def post_adjustment(
        self,
        product_id: str,
        target_on_hand: int,
        reason: MovementReason,
        reference: str,
        actor: str,
        notes: str | None = None,
        at: datetime | None = None,
    ) -> StockMovement | None:
        """Bring on-hand to ``target_on_hand``; None if already there."""
        if target_on_hand < 0:
            raise ValidationError("Target stock cannot be negative")
        before = self.tracker.level(product_id)
        if target_on_hand == before.on_hand:
            return None
        if target_on_hand < before.reserved:
            raise InsufficientStock(
                product_id, before.on_hand - target_on_hand, before.available
            )
        movement = StockMovement.adjustment(
            product_id=product_id,
            stock_before=before.on_hand,
            stock_after=target_on_hand,
            reason=reason,
            reference=reference,
            created_by=actor,
            notes=notes,
            created_at=at,
        )
        self.ledger.record(movement)
        if movement.delta > 0:
            _, after = self.tracker.commit_inbound(product_id, movement.quantity)
        else:
            _, after = self.tracker.commit_outbound(product_id, movement.quantity)
        self._announce(movement, before, after)
        return movement

    def _announce(self, movement: StockMovement, before: StockLevel, after: StockLevel) -> None:
        self._uow.events.append(StockMovementRecorded(movement))
        if after.is_low and not before.is_low:
            self._uow.events.append(
                LowStockDetected(
                    product_id=after.product_id,
                    on_hand=after.on_hand,
                    threshold_alert=after.threshold_alert,
                )
            )

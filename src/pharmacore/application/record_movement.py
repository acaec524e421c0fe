"""Application service: Record Movement use case.

Manual stock movements (receipts, returns, transfers, write-offs and
signed adjustments).  Each one is a tracker change paired with a single
ledger entry in one unit of work.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

import structlog

from pharmacore.application.create_order import parse_choice
from pharmacore.application.dto import MovementDTO, movement_to_dto
from pharmacore.application.retrying import RetryPolicy, run_unit_of_work
from pharmacore.domain.events import EventSink, discard
from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.movement import MovementReason, MovementType, StockMovement
from pharmacore.domain.model.value_objects import Money, Quantity
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.inventory_posting import InventoryPosting

logger = structlog.get_logger(__name__)

DEFAULT_REASONS = {
    MovementType.IN: MovementReason.PURCHASE,
    MovementType.RETURN: MovementReason.RETURN,
    MovementType.TRANSFER: MovementReason.TRANSFER_IN,
    MovementType.OUT: MovementReason.ADJUSTMENT,
    MovementType.DAMAGE: MovementReason.DAMAGE,
    MovementType.EXPIRY: MovementReason.EXPIRY,
    MovementType.ADJUSTMENT: MovementReason.INVENTORY_CORRECTION,
}

DIRECTIONS = ("increase", "decrease")


class RecordMovementHandler:

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        retry: RetryPolicy | None = None,
        on_committed: EventSink = discard,
    ) -> None:
        self._uow_factory = uow_factory
        self._retry = retry or RetryPolicy()
        self._on_committed = on_committed

    def handle(
        self,
        product_id: str,
        type: str,
        quantity: int,
        actor: str,
        reason: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
        direction: str | None = None,
        unit_cost: str | None = None,
        batch_number: str | None = None,
        expiry_date: date | None = None,
    ) -> MovementDTO:
        """Post one manual movement.

        ``unit_cost``, ``batch_number`` and ``expiry_date`` describe a receipt
        and are only accepted on inbound types.
        """
        movement_type = parse_choice(MovementType, type, "movement type")
        movement_reason = (
            parse_choice(MovementReason, reason, "reason")
            if reason
            else DEFAULT_REASONS[movement_type]
        )
        qty = Quantity(quantity).value
        if movement_type == MovementType.ADJUSTMENT and direction not in DIRECTIONS:
            raise ValidationError("Adjustments need a direction: increase or decrease")
        if not movement_type.is_inbound and (unit_cost or batch_number or expiry_date):
            raise ValidationError(
                f"A {movement_type.value} movement cannot carry a cost, batch or expiry date"
            )
        cost = Money.of(unit_cost) if unit_cost else None
        ref = reference or f"Manual {movement_type.value}"

        def work(uow: UnitOfWork) -> StockMovement:
            posting = InventoryPosting(uow)
            if movement_type.is_inbound:
                return posting.post_inbound(
                    product_id,
                    qty,
                    movement_reason,
                    ref,
                    actor,
                    type=movement_type,
                    notes=notes,
                    unit_cost=cost,
                    batch_number=batch_number,
                    expiry_date=expiry_date,
                )
            if movement_type.is_outbound:
                return posting.post_outbound(
                    product_id, qty, movement_reason, ref, actor, type=movement_type, notes=notes
                )
            on_hand = posting.tracker.level(product_id).on_hand
            target = on_hand + qty if direction == "increase" else on_hand - qty
            if target < 0:
                raise ValidationError(
                    f"Cannot decrease stock of '{product_id}' by {qty} (on hand {on_hand})"
                )
            return posting.post_adjustment(
                product_id, target, movement_reason, ref, actor, notes=notes
            )

        movement = run_unit_of_work(self._uow_factory, work, self._retry, self._on_committed)
        logger.info(
            "stock_movement_recorded",
            product_id=product_id,
            type=movement.type.value,
            reason=movement.reason.value,
            stock_before=movement.stock_before,
            stock_after=movement.stock_after,
            total_cost=str(movement.total_cost) if movement.total_cost is not None else None,
        )
        return movement_to_dto(movement)

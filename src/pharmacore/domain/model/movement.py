"""Immutable stock ledger entries.

Each movement binds a ``(stock_before, stock_after)`` pair to a product
and a typed cause.  Movements are created once per committed on-hand
change and never edited afterwards.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from pharmacore.domain.exceptions import InsufficientStock, ValidationError
from pharmacore.domain.model.value_objects import Money


class MovementType(Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    RETURN = "return"
    DAMAGE = "damage"
    EXPIRY = "expiry"

    @property
    def is_inbound(self) -> bool:
        return self in INBOUND_TYPES

    @property
    def is_outbound(self) -> bool:
        return self in OUTBOUND_TYPES


INBOUND_TYPES = frozenset({MovementType.IN, MovementType.RETURN, MovementType.TRANSFER})
OUTBOUND_TYPES = frozenset({MovementType.OUT, MovementType.DAMAGE, MovementType.EXPIRY})


class MovementReason(Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    DAMAGE = "damage"
    EXPIRY = "expiry"
    THEFT = "theft"
    ADJUSTMENT = "adjustment"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    INVENTORY_CORRECTION = "inventory_correction"
    QUALITY_CONTROL = "quality_control"
    INITIAL_STOCK = "initial_stock"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class StockMovement:
    """Ledger entry.

    ``quantity`` is always the magnitude of the change; the direction
    comes from the type (or, for adjustments, from before/after).
    Receipts may carry the purchase cost and the supplier batch.
    """

    product_id: str
    type: MovementType
    quantity: int
    stock_before: int
    stock_after: int
    reason: MovementReason
    reference: str
    created_by: str
    created_at: datetime = field(default_factory=_utcnow)
    notes: str | None = None
    unit_cost: Money | None = None
    batch_number: str | None = None
    expiry_date: date | None = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValidationError("Movement quantity cannot be negative")
        if self.stock_before < 0:
            raise ValidationError("stock_before cannot be negative")
        if self.stock_after < 0:
            raise InsufficientStock(self.product_id, self.quantity, self.stock_before)
        if not self.reference or not self.reference.strip():
            raise ValidationError("Movement reference is required")
        if self.unit_cost is not None and not self.type.is_inbound:
            raise ValidationError("Only inbound movements carry a unit cost")
        if self.stock_after != self.expected_after():
            raise ValidationError(
                f"Movement {self.type.value} of {self.quantity} cannot take stock "
                f"from {self.stock_before} to {self.stock_after}"
            )

    def expected_after(self) -> int:
        if self.type.is_inbound:
            return self.stock_before + self.quantity
        if self.type.is_outbound:
            return self.stock_before - self.quantity
        # Adjustments are signed; either direction is consistent.
        if self.stock_after >= self.stock_before:
            return self.stock_before + self.quantity
        return self.stock_before - self.quantity

    @property
    def delta(self) -> int:
        return self.stock_after - self.stock_before

    @property
    def total_cost(self) -> Money | None:
        if self.unit_cost is None:
            return None
        return (self.unit_cost * self.quantity).rounded()

    # --- Factories ------------------------------------------------------------

    @staticmethod
    def inbound(
        product_id: str,
        quantity: int,
        stock_before: int,
        reason: MovementReason,
        reference: str,
        created_by: str,
        type: MovementType = MovementType.IN,
        notes: str | None = None,
        unit_cost: Money | None = None,
        batch_number: str | None = None,
        expiry_date: date | None = None,
        created_at: datetime | None = None,
    ) -> StockMovement:
        if not type.is_inbound:
            raise ValidationError(f"'{type.value}' is not an inbound movement type")
        return StockMovement(
            product_id=product_id,
            type=type,
            quantity=quantity,
            stock_before=stock_before,
            stock_after=stock_before + quantity,
            reason=reason,
            reference=reference,
            created_by=created_by,
            notes=notes,
            unit_cost=unit_cost,
            batch_number=batch_number,
            expiry_date=expiry_date,
            created_at=created_at or _utcnow(),
        )

    @staticmethod
    def outbound(
        product_id: str,
        quantity: int,
        stock_before: int,
        reason: MovementReason,
        reference: str,
        created_by: str,
        type: MovementType = MovementType.OUT,
        notes: str | None = None,
        batch_number: str | None = None,
        created_at: datetime | None = None,
    ) -> StockMovement:
        if not type.is_outbound:
            raise ValidationError(f"'{type.value}' is not an outbound movement type")
        return StockMovement(
            product_id=product_id,
            type=type,
            quantity=quantity,
            stock_before=stock_before,
            stock_after=stock_before - quantity,
            reason=reason,
            reference=reference,
            created_by=created_by,
            notes=notes,
            batch_number=batch_number,
            created_at=created_at or _utcnow(),
        )

    @staticmethod
    def adjustment(
        product_id: str,
        stock_before: int,
        stock_after: int,
        reason: MovementReason,
        reference: str,
        created_by: str,
        notes: str | None = None,
        created_at: datetime | None = None,
    ) -> StockMovement:
        return StockMovement(
            product_id=product_id,
            type=MovementType.ADJUSTMENT,
            quantity=abs(stock_after - stock_before),
            stock_before=stock_before,
            stock_after=stock_after,
            reason=reason,
            reference=reference,
            created_by=created_by,
            notes=notes,
            created_at=created_at or _utcnow(),
        )


@dataclass(frozen=True)
class MovementFilter:
    """Optional criteria for ledger queries; ``None`` means "any"."""

    type: MovementType | None = None
    reason: MovementReason | None = None
    reference: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    def matches(self, movement: StockMovement) -> bool:
        if self.type is not None and movement.type != self.type:
            return False
        if self.reason is not None and movement.reason != self.reason:
            return False
        if self.reference is not None and movement.reference != self.reference:
            return False
        if self.date_from is not None and movement.created_at < self.date_from:
            return False
        if self.date_to is not None and movement.created_at > self.date_to:
            return False
        return True

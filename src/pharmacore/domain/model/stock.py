"""Per-product on-hand and reserved counters.

A StockLevel is an immutable snapshot read at a given ``version``.  Every
mutation returns a new snapshot; the unit of work stores it with the
version it was derived from so the commit can detect lost updates.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from pharmacore.domain.exceptions import InsufficientStock, ValidationError

DEFAULT_THRESHOLD_ALERT = 10


@dataclass(frozen=True)
class StockLevel:
    """Counters for one product.

    Invariants:
    - ``on_hand`` and ``reserved`` are never negative
    - ``reserved`` can never exceed ``on_hand``
    """

    product_id: str
    on_hand: int
    reserved: int = 0
    threshold_alert: int = DEFAULT_THRESHOLD_ALERT
    version: int = 0

    def __post_init__(self) -> None:
        if self.on_hand < 0:
            raise ValidationError(f"On-hand stock cannot be negative, got {self.on_hand}")
        if self.reserved < 0:
            raise ValidationError(f"Reserved stock cannot be negative, got {self.reserved}")
        if self.threshold_alert < 0:
            raise ValidationError("Threshold alert cannot be negative")
        if self.reserved > self.on_hand:
            raise InsufficientStock(self.product_id, self.reserved, self.on_hand)

    @property
    def available(self) -> int:
        return max(0, self.on_hand - self.reserved)

    @property
    def is_low(self) -> bool:
        return self.on_hand <= self.threshold_alert

    def reserve(self, quantity: int) -> StockLevel:
        """Promise ``quantity`` units to an order."""
        _require_positive(quantity, "Reservation")
        if quantity > self.available:
            raise InsufficientStock(self.product_id, quantity, self.available)
        return replace(self, reserved=self.reserved + quantity)

    def release(self, quantity: int) -> StockLevel:
        """Give back a reservation; never drops below zero."""
        _require_positive(quantity, "Release")
        return replace(self, reserved=self.reserved - min(quantity, self.reserved))

    def remove(self, quantity: int, held: int) -> StockLevel:
        """Physically take ``quantity`` units out.

        ``held`` is how much of that quantity was reserved by the caller;
        that part of the reservation is consumed together with the units.
        """
        _require_positive(quantity, "Outbound")
        if quantity > self.on_hand:
            raise InsufficientStock(self.product_id, quantity, self.on_hand)
        consumed = min(max(held, 0), quantity, self.reserved)
        on_hand = self.on_hand - quantity
        reserved = self.reserved - consumed
        if reserved > on_hand:
            # The units belong to other orders' reservations.
            raise InsufficientStock(self.product_id, quantity - consumed, self.available)
        return replace(self, on_hand=on_hand, reserved=reserved)

    def add(self, quantity: int) -> StockLevel:
        _require_positive(quantity, "Inbound")
        return replace(self, on_hand=self.on_hand + quantity)


def _require_positive(quantity: int, what: str) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{what} quantity must be an integer")
    if quantity <= 0:
        raise ValidationError(f"{what} quantity must be positive")

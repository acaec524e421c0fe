"""Events published after a unit of work commits.

The host application wires an ``EventSink`` (any callable taking one
event) into the handlers to push notifications, refresh dashboards, etc.
Events are never published for rolled-back work.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from pharmacore.domain.model.movement import StockMovement


@dataclass(frozen=True)
class OrderCreated:
    order_id: int
    order_number: str
    status: str
    total_ttc: str


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: int
    order_number: str
    from_status: str
    to_status: str
    changed_by: str | None


@dataclass(frozen=True)
class StockMovementRecorded:
    movement: StockMovement


@dataclass(frozen=True)
class LowStockDetected:
    product_id: str
    on_hand: int
    threshold_alert: int


DomainEvent = OrderCreated | OrderStatusChanged | StockMovementRecorded | LowStockDetected

EventSink = Callable[[DomainEvent], None]


def discard(event: DomainEvent) -> None:
    """Default sink: drop everything."""

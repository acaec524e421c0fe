"""Application service: Set Stock use case.

Opens a stock record with an ``initial_stock`` entry, or brings an
existing one to the counted quantity with an ``inventory_correction``
adjustment.  Either way the ledger keeps explaining the on-hand figure.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

import structlog

from pharmacore.application.dto import StockLineDTO, stock_to_dto
from pharmacore.application.retrying import RetryPolicy, run_unit_of_work
from pharmacore.domain.events import EventSink, discard
from pharmacore.domain.exceptions import ProductNotFound, ValidationError
from pharmacore.domain.model.movement import MovementReason
from pharmacore.domain.model.stock import DEFAULT_THRESHOLD_ALERT, StockLevel
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.inventory_posting import InventoryPosting

logger = structlog.get_logger(__name__)


class SetStockHandler:

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
        on_hand: int,
        actor: str,
        threshold_alert: int | None = None,
    ) -> StockLineDTO:
        """Set the counted on-hand quantity for a product."""
        if on_hand < 0:
            raise ValidationError("Stock quantity cannot be negative")

        def work(uow: UnitOfWork) -> tuple[StockLevel, str]:
            product = uow.products.get_by_id(product_id)
            if product is None:
                raise ProductNotFound(product_id)

            posting = InventoryPosting(uow)
            existing = uow.stock.get(product_id)
            if existing is None:
                threshold = DEFAULT_THRESHOLD_ALERT if threshold_alert is None else threshold_alert
                posting.tracker.open(product_id, threshold)
                if on_hand > 0:
                    posting.post_inbound(
                        product_id,
                        on_hand,
                        MovementReason.INITIAL_STOCK,
                        reference="Initial stock",
                        actor=actor,
                    )
            else:
                posting.post_adjustment(
                    product_id,
                    on_hand,
                    MovementReason.INVENTORY_CORRECTION,
                    reference="Stock count",
                    actor=actor,
                )
                if threshold_alert is not None:
                    current = uow.stock.get(product_id)
                    uow.stock.compare_and_set(
                        current, replace(current, threshold_alert=threshold_alert)
                    )
            return uow.stock.get(product_id), product.name

        level, name = run_unit_of_work(self._uow_factory, work, self._retry, self._on_committed)
        logger.info("stock_set", product_id=product_id, on_hand=level.on_hand)
        return stock_to_dto(level, name)

"""Application services: stock and ledger queries."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from pharmacore.application.dto import (
    LowStockDTO,
    MovementDTO,
    StockLineDTO,
    ValuationDTO,
    movement_to_dto,
    stock_to_dto,
)
from pharmacore.domain.exceptions import ProductNotFound
from pharmacore.domain.model.movement import MovementFilter
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.inventory_ledger import InventoryLedger
from pharmacore.domain.service.stock_tracker import StockTracker


class GetAvailableStockHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(self, product_id: str) -> int:
        """Units that can be freshly promised (0 when untracked)."""
        with self._uow_factory() as uow:
            return StockTracker(uow.stock).available(product_id)


class MovementHistoryHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(
        self, product_id: str, filters: MovementFilter | None = None
    ) -> list[MovementDTO]:
        with self._uow_factory() as uow:
            if uow.products.get_by_id(product_id) is None and uow.stock.get(product_id) is None:
                raise ProductNotFound(product_id)
            ledger = InventoryLedger(uow.movements, StockTracker(uow.stock))
            movements = ledger.history(product_id, filters)
        return [movement_to_dto(m) for m in movements]


class ShowStockHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(self) -> list[StockLineDTO]:
        with self._uow_factory() as uow:
            names = {p.id: p.name for p in uow.products.list_all()}
            levels = uow.stock.list_all()
        return [stock_to_dto(level, names.get(level.product_id, "?")) for level in levels]


class LowStockHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(self) -> list[LowStockDTO]:
        """Active products at or below their alert threshold, emptiest first."""
        with self._uow_factory() as uow:
            products = {p.id: p for p in uow.products.list_all() if p.is_active}
            levels = [lv for lv in uow.stock.list_all() if lv.product_id in products]

        alerts = [
            LowStockDTO(
                product_id=level.product_id,
                product_name=products[level.product_id].name,
                on_hand=level.on_hand,
                threshold_alert=level.threshold_alert,
                alert="out_of_stock" if level.on_hand == 0 else "low_stock",
            )
            for level in levels
            if level.is_low
        ]
        return sorted(alerts, key=lambda a: (a.on_hand, a.product_id))


class InventoryValueHandler:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def handle(self, at: datetime | None = None) -> list[ValuationDTO]:
        at = at or datetime.now(timezone.utc)
        with self._uow_factory() as uow:
            ledger = InventoryLedger(uow.movements, StockTracker(uow.stock))
            valuations = ledger.value_at(at)
        return [
            ValuationDTO(
                product_id=v.product_id,
                total_in=v.total_in,
                total_out=v.total_out,
                on_hand=v.on_hand,
                total_cost=str(v.total_cost),
                average_cost=str(v.average_cost),
            )
            for v in valuations
        ]

"""Composition root: builds the store and every handler from the settings.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from functools import lru_cache

from pharmacore.application.add_product import AddProductHandler
from pharmacore.application.create_order import CreateOrderHandler
from pharmacore.application.expire_reservations import (
    ExpiredReservationsHandler,
    ExpireReservationsHandler,
)
from pharmacore.application.record_movement import RecordMovementHandler
from pharmacore.application.retrying import RetryPolicy
from pharmacore.application.set_stock import SetStockHandler
from pharmacore.application.show_order import ListOrdersHandler, ShowOrderHandler
from pharmacore.application.stock_queries import (
    GetAvailableStockHandler,
    InventoryValueHandler,
    LowStockHandler,
    MovementHistoryHandler,
    ShowStockHandler,
)
from pharmacore.application.transition_order import TransitionOrderHandler
from pharmacore.infrastructure.config import Settings
from pharmacore.infrastructure.logging import log_event
from pharmacore.infrastructure.persistence.json_store import JsonStore


@lru_cache(maxsize=1)
def settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def store() -> JsonStore:
    return JsonStore(settings().data_dir)


def retry_policy() -> RetryPolicy:
    cfg = settings()
    return RetryPolicy(max_attempts=cfg.max_attempts, base_delay=cfg.backoff_ms / 1000)


# --- Handlers ----------------------------------------------------------------


def add_product_handler() -> AddProductHandler:
    return AddProductHandler(store().unit_of_work, retry_policy())


def create_order_handler() -> CreateOrderHandler:
    return CreateOrderHandler(
        store().unit_of_work, settings().delivery_fee, retry_policy(), on_committed=log_event
    )


def transition_order_handler() -> TransitionOrderHandler:
    return TransitionOrderHandler(
        store().unit_of_work, settings().delivery_fee, retry_policy(), on_committed=log_event
    )


def expired_reservations_handler() -> ExpiredReservationsHandler:
    return ExpiredReservationsHandler(store().unit_of_work)


def expire_reservations_handler() -> ExpireReservationsHandler:
    return ExpireReservationsHandler(
        store().unit_of_work, settings().delivery_fee, retry_policy(), on_committed=log_event
    )


def show_order_handler() -> ShowOrderHandler:
    return ShowOrderHandler(store().unit_of_work)


def list_orders_handler() -> ListOrdersHandler:
    return ListOrdersHandler(store().unit_of_work)


def set_stock_handler() -> SetStockHandler:
    return SetStockHandler(store().unit_of_work, retry_policy(), on_committed=log_event)


def record_movement_handler() -> RecordMovementHandler:
    return RecordMovementHandler(store().unit_of_work, retry_policy(), on_committed=log_event)


def available_stock_handler() -> GetAvailableStockHandler:
    return GetAvailableStockHandler(store().unit_of_work)


def movement_history_handler() -> MovementHistoryHandler:
    return MovementHistoryHandler(store().unit_of_work)


def show_stock_handler() -> ShowStockHandler:
    return ShowStockHandler(store().unit_of_work)


def low_stock_handler() -> LowStockHandler:
    return LowStockHandler(store().unit_of_work)


def inventory_value_handler() -> InventoryValueHandler:
    return InventoryValueHandler(store().unit_of_work)

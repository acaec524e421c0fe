"""Logging configuration.

Application modules log through ``structlog.get_logger(__name__)``;
``configure_logging()`` is called once by the CLI entry point.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

from pharmacore.domain.events import (
    DomainEvent,
    LowStockDetected,
    OrderCreated,
    OrderStatusChanged,
    StockMovementRecorded,
)


def get_log_level(verbose: bool = False) -> str:
    """Get log level based on environment."""
    if verbose:
        return "DEBUG"
    env = (os.getenv("ENVIRONMENT") or "development").lower()

    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "WARNING",
        "test": "WARNING",
    }

    return os.getenv("LOG_LEVEL", level_map.get(env, "INFO")).upper()


def setup_stdlib_logging(level: str) -> None:
    """Route stdlib logging to stderr so command output stays clean."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    root_logger.addHandler(handler)


def setup_structlog() -> None:
    env = (os.getenv("ENVIRONMENT") or "development").lower()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if env in ["production", "staging"]:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(verbose: bool = False) -> None:
    """Configure all logging for the application."""
    setup_stdlib_logging(get_log_level(verbose))
    setup_structlog()


_events_logger = structlog.get_logger("pharmacore.events")


def log_event(event: DomainEvent) -> None:
    """Event sink that writes committed events to the log."""
    if isinstance(event, OrderCreated):
        _events_logger.info(
            "order_created",
            order_id=event.order_id,
            order_number=event.order_number,
            status=event.status,
            total_ttc=event.total_ttc,
        )
    elif isinstance(event, OrderStatusChanged):
        _events_logger.info(
            "order_status_changed",
            order_id=event.order_id,
            order_number=event.order_number,
            from_status=event.from_status,
            to_status=event.to_status,
            changed_by=event.changed_by,
        )
    elif isinstance(event, StockMovementRecorded):
        movement = event.movement
        _events_logger.info(
            "stock_movement_recorded",
            product_id=movement.product_id,
            type=movement.type.value,
            reason=movement.reason.value,
            quantity=movement.quantity,
            stock_before=movement.stock_before,
            stock_after=movement.stock_after,
            reference=movement.reference,
        )
    elif isinstance(event, LowStockDetected):
        _events_logger.warning(
            "low_stock_detected",
            product_id=event.product_id,
            on_hand=event.on_hand,
            threshold_alert=event.threshold_alert,
        )

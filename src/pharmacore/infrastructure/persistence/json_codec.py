"""Conversion between domain objects and JSON-ready dicts."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pharmacore.domain.model.movement import MovementReason, MovementType, StockMovement
from pharmacore.domain.model.order import (
    DeliveryMethod,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    StatusChange,
)
from pharmacore.domain.model.pricing import Coupon, CouponType, OrderTotals
from pharmacore.domain.model.product import Product
from pharmacore.domain.model.stock import StockLevel
from pharmacore.domain.model.value_objects import DEFAULT_CURRENCY, Money, Quantity

_TOTAL_FIELDS = (
    "subtotal_ht",
    "subtotal_ttc",
    "tax_total",
    "discount_total",
    "shipping_cost",
    "total_ht",
    "total_ttc",
)


def _money(amount: str, currency: str) -> Money:
    return Money(Decimal(amount), currency)


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# --- Product -----------------------------------------------------------------


def product_to_raw(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "price_ttc": str(product.price_ttc.amount),
        "currency": product.price_ttc.currency,
        "tax_rate": str(product.tax_rate),
        "is_active": product.is_active,
        "is_prescription_required": product.is_prescription_required,
        "category": product.category,
    }


def product_from_raw(raw: dict) -> Product:
    return Product(
        id=raw["id"],
        name=raw["name"],
        price_ttc=_money(raw["price_ttc"], raw.get("currency", DEFAULT_CURRENCY)),
        tax_rate=Decimal(raw.get("tax_rate", "0")),
        is_active=raw.get("is_active", True),
        is_prescription_required=raw.get("is_prescription_required", False),
        category=raw.get("category"),
    )


# --- Stock -------------------------------------------------------------------


def stock_to_raw(level: StockLevel) -> dict:
    return {
        "product_id": level.product_id,
        "on_hand": level.on_hand,
        "reserved": level.reserved,
        "threshold_alert": level.threshold_alert,
        "version": level.version,
    }


def stock_from_raw(raw: dict) -> StockLevel:
    return StockLevel(
        product_id=raw["product_id"],
        on_hand=raw["on_hand"],
        reserved=raw.get("reserved", 0),
        threshold_alert=raw["threshold_alert"],
        version=raw.get("version", 0),
    )


def movement_to_raw(movement: StockMovement) -> dict:
    return {
        "id": movement.id,
        "product_id": movement.product_id,
        "type": movement.type.value,
        "quantity": movement.quantity,
        "stock_before": movement.stock_before,
        "stock_after": movement.stock_after,
        "reason": movement.reason.value,
        "reference": movement.reference,
        "created_by": movement.created_by,
        "created_at": movement.created_at.isoformat(),
        "notes": movement.notes,
        "unit_cost": str(movement.unit_cost.amount) if movement.unit_cost else None,
        "currency": movement.unit_cost.currency if movement.unit_cost else None,
        "batch_number": movement.batch_number,
        "expiry_date": movement.expiry_date.isoformat() if movement.expiry_date else None,
    }


def movement_from_raw(raw: dict) -> StockMovement:
    return StockMovement(
        id=raw["id"],
        product_id=raw["product_id"],
        type=MovementType(raw["type"]),
        quantity=raw["quantity"],
        stock_before=raw["stock_before"],
        stock_after=raw["stock_after"],
        reason=MovementReason(raw["reason"]),
        reference=raw["reference"],
        created_by=raw["created_by"],
        created_at=datetime.fromisoformat(raw["created_at"]),
        notes=raw.get("notes"),
        unit_cost=(
            _money(raw["unit_cost"], raw.get("currency") or DEFAULT_CURRENCY)
            if raw.get("unit_cost")
            else None
        ),
        batch_number=raw.get("batch_number"),
        expiry_date=date.fromisoformat(raw["expiry_date"]) if raw.get("expiry_date") else None,
    )


# --- Order -------------------------------------------------------------------


def order_to_raw(order: Order) -> dict:
    currency = order.totals.total_ttc.currency
    return {
        "id": order.id,
        "order_number": order.order_number,
        "customer_id": order.customer_id,
        "order_type": order.order_type.value,
        "delivery_method": order.delivery_method.value,
        "status": order.status.value,
        "created_at": order.created_at.isoformat(),
        "expires_at": order.expires_at.isoformat() if order.expires_at else None,
        "notes": order.notes,
        "version": order.version,
        "currency": currency,
        "totals": {name: str(getattr(order.totals, name).amount) for name in _TOTAL_FIELDS},
        "coupon": (
            {
                "code": order.coupon.code,
                "value": str(order.coupon.value),
                "type": order.coupon.type.value,
            }
            if order.coupon
            else None
        ),
        "payment": {
            "method": order.payment.method.value,
            "amount": str(order.payment.amount.amount),
            "status": order.payment.status.value,
            "transaction_id": order.payment.transaction_id,
            "paid_at": order.payment.paid_at.isoformat() if order.payment.paid_at else None,
            "refunded_at": (
                order.payment.refunded_at.isoformat() if order.payment.refunded_at else None
            ),
        },
        "items": [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity.value,
                "price_ttc": str(item.price_ttc.amount),
                "tax_rate": str(item.tax_rate),
                "price_ht": str(item.price_ht.amount),
                "total_ht": str(item.total_ht.amount),
                "total_ttc": str(item.total_ttc.amount),
                "discount": str(item.discount.amount),
                "prescription": item.prescription,
                "notes": item.notes,
                "reserved_quantity": item.reserved_quantity,
            }
            for item in order.items
        ],
        "status_history": [
            {
                "status": change.status.value,
                "changed_at": change.changed_at.isoformat(),
                "changed_by": change.changed_by,
                "reason": change.reason,
            }
            for change in order.status_history
        ],
    }


def order_from_raw(raw: dict) -> Order:
    currency = raw.get("currency", DEFAULT_CURRENCY)
    items = [
        OrderItem(
            product_id=i["product_id"],
            product_name=i["product_name"],
            quantity=Quantity(i["quantity"]),
            price_ttc=_money(i["price_ttc"], currency),
            tax_rate=Decimal(i["tax_rate"]),
            price_ht=_money(i["price_ht"], currency),
            total_ht=_money(i["total_ht"], currency),
            total_ttc=_money(i["total_ttc"], currency),
            discount=_money(i["discount"], currency),
            prescription=i.get("prescription"),
            notes=i.get("notes"),
            reserved_quantity=i.get("reserved_quantity", 0),
        )
        for i in raw["items"]
    ]
    pay = raw["payment"]
    payment = Payment(
        method=PaymentMethod(pay["method"]),
        amount=_money(pay["amount"], currency),
        status=PaymentStatus(pay["status"]),
        transaction_id=pay.get("transaction_id"),
        paid_at=_dt(pay.get("paid_at")),
        refunded_at=_dt(pay.get("refunded_at")),
    )
    coupon = raw.get("coupon")
    return Order(
        id=raw["id"],
        order_number=raw["order_number"],
        customer_id=raw["customer_id"],
        order_type=OrderType(raw["order_type"]),
        delivery_method=DeliveryMethod(raw["delivery_method"]),
        items=items,
        payment=payment,
        totals=OrderTotals(
            **{name: _money(raw["totals"][name], currency) for name in _TOTAL_FIELDS}
        ),
        coupon=(
            Coupon(coupon["code"], Decimal(coupon["value"]), CouponType(coupon["type"]))
            if coupon
            else None
        ),
        status=OrderStatus(raw["status"]),
        status_history=[
            StatusChange(
                status=OrderStatus(h["status"]),
                changed_at=datetime.fromisoformat(h["changed_at"]),
                changed_by=h.get("changed_by"),
                reason=h.get("reason"),
            )
            for h in raw.get("status_history", [])
        ],
        created_at=datetime.fromisoformat(raw["created_at"]),
        expires_at=_dt(raw.get("expires_at")),
        notes=raw.get("notes"),
        version=raw.get("version", 0),
    )

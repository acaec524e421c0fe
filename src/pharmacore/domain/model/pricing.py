"""Pricing value objects: inputs and outputs of the order total calculator."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.value_objects import Money


class CouponType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class Coupon:
    code: str
    value: Decimal
    type: CouponType = CouponType.PERCENTAGE

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValidationError("Coupon value cannot be negative")
        if self.type == CouponType.PERCENTAGE and self.value > 100:
            raise ValidationError("Percentage coupon cannot exceed 100")


@dataclass(frozen=True)
class LineInput:
    """What the calculator needs to know about one order line."""

    price_ttc: Money
    tax_rate: Decimal
    quantity: int
    discount: Money


@dataclass(frozen=True)
class PricedLine:
    price_ht: Money
    price_ttc: Money
    total_ht: Money
    total_ttc: Money
    tax: Money
    discount: Money


@dataclass(frozen=True)
class OrderTotals:
    subtotal_ht: Money
    subtotal_ttc: Money
    tax_total: Money
    discount_total: Money
    shipping_cost: Money
    total_ht: Money
    total_ttc: Money

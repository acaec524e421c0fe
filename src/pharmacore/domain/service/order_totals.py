"""Order total calculator.

Pure and deterministic: no repositories, no clock.  Every monetary
intermediate is rounded half-up to two decimals as soon as it is
produced, so recomputing from stored line data always yields the stored
figures.
"""

from __future__ import annotations

from collections.abc import Iterable

from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.pricing import (
    Coupon,
    CouponType,
    LineInput,
    OrderTotals,
    PricedLine,
)
from pharmacore.domain.model.value_objects import Money


def price_line(line: LineInput) -> PricedLine:
    price_ttc = line.price_ttc.rounded()
    price_ht = price_ttc.without_tax(line.tax_rate)
    gross_ttc = (price_ttc * line.quantity).rounded()
    if line.discount > gross_ttc:
        raise ValidationError(
            f"Line discount {line.discount} exceeds line total {gross_ttc}"
        )
    # price_ht <= price_ttc for any non-negative rate, so tax is never negative
    tax = (price_ttc - price_ht) * line.quantity
    return PricedLine(
        price_ht=price_ht,
        price_ttc=price_ttc,
        total_ht=(price_ht * line.quantity).rounded(),
        total_ttc=gross_ttc - line.discount.rounded(),
        tax=tax.rounded(),
        discount=line.discount.rounded(),
    )


def coupon_discount(coupon: Coupon | None, subtotal_ttc: Money) -> Money:
    """Order-level discount, applied to the TTC subtotal before shipping."""
    if coupon is None:
        return Money.zero(subtotal_ttc.currency)
    if coupon.type == CouponType.PERCENTAGE:
        return subtotal_ttc.percent(coupon.value)
    amount = Money(coupon.value, subtotal_ttc.currency).rounded()
    if amount > subtotal_ttc:
        raise ValidationError(
            f"Coupon '{coupon.code}' ({amount}) exceeds order subtotal {subtotal_ttc}"
        )
    return amount


def calculate_totals(
    lines: Iterable[LineInput],
    shipping_cost: Money,
    coupon: Coupon | None = None,
) -> OrderTotals:
    currency = shipping_cost.currency
    subtotal_ht = Money.zero(currency)
    subtotal_ttc = Money.zero(currency)
    tax_total = Money.zero(currency)
    discount_total = Money.zero(currency)

    for line in lines:
        priced = price_line(line)
        subtotal_ht = subtotal_ht + priced.total_ht
        subtotal_ttc = subtotal_ttc + priced.total_ttc
        tax_total = tax_total + priced.tax
        discount_total = discount_total + priced.discount

    extra = coupon_discount(coupon, subtotal_ttc)
    discount_total = discount_total + extra
    subtotal_ttc = subtotal_ttc - extra

    shipping = shipping_cost.rounded()
    return OrderTotals(
        subtotal_ht=subtotal_ht,
        subtotal_ttc=subtotal_ttc,
        tax_total=tax_total,
        discount_total=discount_total,
        shipping_cost=shipping,
        total_ht=subtotal_ht + shipping,
        total_ttc=subtotal_ttc + shipping,
    )

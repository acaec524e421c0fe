"""Unit tests for the order total calculator."""

from decimal import Decimal

import pytest

from pharmacore.application.create_order import CreateOrderHandler
from pharmacore.application.dto import CreateOrderRequest, OrderItemSpec
from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.pricing import Coupon, CouponType, LineInput
from pharmacore.domain.model.value_objects import Money
from pharmacore.domain.service.order_totals import calculate_totals, coupon_discount, price_line
from pharmacore.infrastructure.persistence import json_codec
from tests.fakes import make_product, seeded_store


def _line(price: str, qty: int, tax: str = "0", discount: str = "0") -> LineInput:
    return LineInput(
        price_ttc=Money.of(price),
        tax_rate=Decimal(tax),
        quantity=qty,
        discount=Money.of(discount),
    )


class TestPriceLine:

    def test_tax_inclusive_split(self):
        priced = price_line(_line("1180", 3, tax="18"))
        assert priced.price_ht == Money.of("1000.00")
        assert priced.total_ht == Money.of("3000.00")
        assert priced.total_ttc == Money.of("3540.00")
        assert priced.tax == Money.of("540.00")

    def test_line_discount_comes_off_ttc(self):
        priced = price_line(_line("5000", 2, discount="1500"))
        assert priced.total_ttc == Money.of("8500.00")
        assert priced.discount == Money.of("1500.00")

    def test_discount_above_line_total_rejected(self):
        with pytest.raises(ValidationError, match="exceeds line total"):
            price_line(_line("100", 1, discount="150"))

    def test_zero_tax_means_ht_equals_ttc(self):
        priced = price_line(_line("2500", 4))
        assert priced.price_ht == priced.price_ttc
        assert priced.tax == Money.zero()


class TestCalculateTotals:

    def test_aggregates_lines_and_shipping(self):
        totals = calculate_totals(
            [_line("1180", 3, tax="18"), _line("5000", 2)],
            shipping_cost=Money.of("2000"),
        )
        assert totals.subtotal_ht == Money.of("13000.00")
        assert totals.subtotal_ttc == Money.of("13540.00")
        assert totals.tax_total == Money.of("540.00")
        assert totals.shipping_cost == Money.of("2000.00")
        assert totals.total_ht == Money.of("15000.00")
        assert totals.total_ttc == Money.of("15540.00")

    def test_percentage_coupon_applies_before_shipping(self):
        totals = calculate_totals(
            [_line("5000", 4)],
            shipping_cost=Money.of("2000"),
            coupon=Coupon("WELCOME10", Decimal("10")),
        )
        assert totals.discount_total == Money.of("2000.00")
        assert totals.subtotal_ttc == Money.of("18000.00")
        assert totals.total_ttc == Money.of("20000.00")

    def test_fixed_coupon(self):
        coupon = Coupon("MINUS500", Decimal("500"), CouponType.FIXED)
        assert coupon_discount(coupon, Money.of("3000")) == Money.of("500.00")

    def test_fixed_coupon_above_subtotal_rejected(self):
        coupon = Coupon("BIG", Decimal("5000"), CouponType.FIXED)
        with pytest.raises(ValidationError, match="exceeds order subtotal"):
            calculate_totals([_line("1000", 1)], Money.zero(), coupon)

    def test_percentage_above_100_rejected(self):
        with pytest.raises(ValidationError):
            Coupon("ALL", Decimal("120"))

    def test_rounds_half_up_at_every_step(self):
        # 999.99 / 1.18 = 847.449... -> 847.45
        totals = calculate_totals([_line("999.99", 7, tax="18", discount="0.01")], Money.zero())
        assert totals.subtotal_ht == Money.of("5932.15")
        assert totals.subtotal_ttc == Money.of("6999.92")
        assert totals.tax_total == Money.of("1067.78")


class TestRoundTrip:

    def test_recomputing_a_persisted_order_gives_the_stored_totals(self):
        store = seeded_store(
            products=[
                make_product("P001", "Amoxicilline 1g", price="3333.33", tax_rate="18"),
                make_product("P002", "Vitamine C", price="1249.99", tax_rate="5.5"),
            ],
            stock={"P001": 50, "P002": 50},
        )
        handler = CreateOrderHandler(store.unit_of_work, Money.of("2000"))
        dto = handler.handle(
            CreateOrderRequest(
                customer_id="C-1",
                items=[
                    OrderItemSpec("P001", 3, discount="0.05"),
                    OrderItemSpec("P002", 7),
                ],
                delivery_method="delivery",
                coupon_code="PROMO",
                coupon_value="7.5",
            ),
            actor="counter-1",
        )

        stored = json_codec.order_from_raw(json_codec.order_to_raw(store.order(dto.id)))
        recomputed = calculate_totals(
            stored.pricing_inputs(),
            shipping_cost=stored.totals.shipping_cost,
            coupon=stored.coupon,
        )
        assert recomputed == stored.totals

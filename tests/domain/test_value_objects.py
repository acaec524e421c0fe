"""Unit tests for money, quantities and rates."""

from decimal import Decimal

import pytest

from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.value_objects import Money, Quantity, parse_rate, round2


class TestMoney:

    def test_defaults_to_guinean_francs(self):
        assert Money(Decimal("5000")).currency == "GNF"

    def test_of_accepts_cli_input(self):
        assert Money.of(" 1180 ").amount == Decimal("1180")
        assert Money.of(2000) == Money(Decimal("2000"))

    @pytest.mark.parametrize("raw", ["cinq mille", "", "NaN", "Infinity"])
    def test_of_rejects_garbage(self, raw):
        with pytest.raises(ValidationError, match="Invalid amount"):
            Money.of(raw)

    def test_float_amount_rejected(self):
        with pytest.raises(ValidationError, match="must be a Decimal"):
            Money(5000.0)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            Money.of("-1")

    def test_line_arithmetic(self):
        gross = Money.of("5000") * 3
        assert gross - Money.of("1500") == Money.of("13500")
        assert gross + Money.of("2000") == Money.of("17000")

    def test_discount_larger_than_amount_rejected(self):
        with pytest.raises(ValidationError, match="Cannot take"):
            Money.of("1000") - Money.of("1500")

    @pytest.mark.parametrize("units", [1.5, True])
    def test_only_whole_units_multiply(self, units):
        with pytest.raises(TypeError):
            Money.of("5000") * units

    def test_currencies_never_mix(self):
        with pytest.raises(ValidationError, match="Cannot combine"):
            Money.of("10") + Money.of("5", "XOF")
        with pytest.raises(ValidationError, match="Cannot combine"):
            Money.of("10") > Money.of("5", "XOF")

    def test_display(self):
        assert str(Money.of("15540")) == "15540.00 GNF"
        assert str(Money.of("847.5")) == "847.50 GNF"

    def test_ordering(self):
        assert Money.of("1000") < Money.of("1180")
        assert Money.of("1180") > Money.of("1000")
        assert not Money.of("1000") > Money.of("1000")


class TestRounding:

    def test_half_up(self):
        assert round2(Decimal("0.125")) == Decimal("0.13")
        assert round2(Decimal("2.675")) == Decimal("2.68")
        assert round2(Decimal("2.674")) == Decimal("2.67")

    def test_without_tax(self):
        # 1180 TTC at 18% is exactly 1000 HT
        assert Money.of("1180").without_tax(Decimal("18")) == Money.of("1000.00")

    def test_without_tax_rounds_to_cents(self):
        assert Money.of("1000").without_tax(Decimal("18")).amount == Decimal("847.46")

    def test_zero_rate_keeps_price(self):
        assert Money.of("5000").without_tax(Decimal("0")) == Money.of("5000.00")

    def test_percent(self):
        assert Money.of("15000").percent(Decimal("10")) == Money.of("1500.00")
        assert Money.of("999.99").percent(Decimal("5")).amount == Decimal("50.00")


class TestParseRate:

    def test_parses_string(self):
        assert parse_rate("18") == Decimal("18")
        assert parse_rate("5.5") == Decimal("5.5")

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError, match="Invalid rate"):
            parse_rate("dix-huit")

    def test_negative_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            parse_rate("-1")


class TestQuantity:

    def test_valid_quantity(self):
        assert Quantity(5).value == 5
        assert str(Quantity(7)) == "7"

    @pytest.mark.parametrize("value", [0, -3])
    def test_not_positive_rejected(self, value):
        with pytest.raises(ValidationError, match="must be positive"):
            Quantity(value)

    @pytest.mark.parametrize("value", [True, 2.0, "3"])
    def test_not_whole_units_rejected(self, value):
        with pytest.raises(ValidationError, match="whole number of units"):
            Quantity(value)

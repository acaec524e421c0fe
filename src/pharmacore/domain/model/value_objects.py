"""Money and quantities.

Prices are stored tax-inclusive (TTC) in Guinean francs and every figure
derived from them is rounded half-up to the centime.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from pharmacore.domain.exceptions import ValidationError

DEFAULT_CURRENCY = "GNF"
CENT = Decimal("0.01")


def round2(amount: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """Non-negative Decimal amount in one currency."""

    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValidationError(f"Amount must be a Decimal, got {type(self.amount).__name__}")
        if self.amount < 0:
            raise ValidationError(f"Amount cannot be negative, got {self.amount}")

    def __add__(self, other: Money) -> Money:
        return Money(self.amount + self._amount_of(other), self.currency)

    def __sub__(self, other: Money) -> Money:
        remainder = self.amount - self._amount_of(other)
        if remainder < 0:
            raise ValidationError(f"Cannot take {other} from {self}")
        return Money(remainder, self.currency)

    def __mul__(self, units: int) -> Money:
        if isinstance(units, bool) or not isinstance(units, int):
            raise TypeError(f"Money can only be multiplied by a unit count, got {type(units).__name__}")
        return Money(self.amount * units, self.currency)

    def __lt__(self, other: Money) -> bool:
        return self.amount < self._amount_of(other)

    def __gt__(self, other: Money) -> bool:
        return self.amount > self._amount_of(other)

    def rounded(self) -> Money:
        return Money(round2(self.amount), self.currency)

    def without_tax(self, tax_rate: Decimal) -> Money:
        """Strip a percentage tax from a tax-inclusive amount (rounded)."""
        return Money(round2(self.amount / (1 + tax_rate / 100)), self.currency)

    def percent(self, rate: Decimal) -> Money:
        return Money(round2(self.amount * rate / 100), self.currency)

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency}"

    def _amount_of(self, other: Money) -> Decimal:
        if other.currency != self.currency:
            raise ValidationError(f"Cannot combine {self.currency} with {other.currency}")
        return other.amount

    @staticmethod
    def of(amount: str | float | int | Decimal, currency: str = DEFAULT_CURRENCY) -> Money:
        """Build from user input such as "5000" or 1180.5."""
        try:
            value = Decimal(str(amount).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid amount: {amount!r}") from exc
        if not value.is_finite():
            raise ValidationError(f"Invalid amount: {amount!r}")
        return Money(value, currency)

    @staticmethod
    def zero(currency: str = DEFAULT_CURRENCY) -> Money:
        return Money(Decimal("0.00"), currency)


@dataclass(frozen=True)
class Quantity:
    """Units of a product on one order line or movement; at least one."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(f"Quantity must be a whole number of units, got {self.value!r}")
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)


def parse_rate(value: str | float | int | Decimal) -> Decimal:
    """Parse a tax or discount percentage."""
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid rate: {value!r}") from exc
    if rate < 0:
        raise ValidationError(f"Rate cannot be negative, got {rate}")
    return rate

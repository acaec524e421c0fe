"""Product aggregate (catalog view).

The catalog itself is maintained elsewhere; the fulfillment core only
reads the fields it needs to price and validate an order line.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.value_objects import Money


@dataclass
class Product:
    """A product in the catalog.

    ``price_ttc`` is the tax-inclusive unit price; ``tax_rate`` is a
    percentage (e.g. ``Decimal("18")``).
    """

    id: str
    name: str
    price_ttc: Money
    tax_rate: Decimal = Decimal("0")
    is_active: bool = True
    is_prescription_required: bool = False
    category: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Product name is required")
        if self.tax_rate < 0:
            raise ValidationError("Tax rate cannot be negative")

    @property
    def price_ht(self) -> Money:
        return self.price_ttc.without_tax(self.tax_rate)

"""Application service: Add Product use case."""

from __future__ import annotations

from collections.abc import Callable

from pharmacore.application.retrying import RetryPolicy, run_unit_of_work
from pharmacore.domain.exceptions import ValidationError
from pharmacore.domain.model.product import Product
from pharmacore.domain.model.value_objects import Money, parse_rate
from pharmacore.domain.repository.unit_of_work import UnitOfWork


class AddProductHandler:

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        retry: RetryPolicy | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._retry = retry or RetryPolicy()

    def handle(
        self,
        name: str,
        price_ttc: str,
        tax_rate: str = "0",
        prescription_required: bool = False,
        category: str | None = None,
        product_id: str | None = None,
    ) -> Product:
        """Add a new product to the catalog."""
        if not name or not name.strip():
            raise ValidationError("Product name is required")

        def work(uow: UnitOfWork) -> Product:
            existing = uow.products.get_by_name(name.strip())
            if existing is not None:
                raise ValidationError(f"Product '{name}' already exists")
            if product_id and uow.products.get_by_id(product_id) is not None:
                raise ValidationError(f"Product ID '{product_id}' already exists")

            # Auto-assign ID based on existing numeric IDs
            numeric = [int(p.id) for p in uow.products.list_all() if p.id.isdigit()]
            next_id = product_id or str(max(numeric, default=0) + 1)

            product = Product(
                id=next_id,
                name=name.strip(),
                price_ttc=Money.of(price_ttc),
                tax_rate=parse_rate(tax_rate),
                is_prescription_required=prescription_required,
                category=category,
            )
            uow.products.add(product)
            return product

        return run_unit_of_work(self._uow_factory, work, self._retry)

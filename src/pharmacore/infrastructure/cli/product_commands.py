"""CLI commands for the Product catalog."""

from __future__ import annotations

import click

from pharmacore.domain.exceptions import DomainException
from pharmacore.infrastructure.bootstrap import add_product_handler, store


@click.command("add")
@click.option("--name", required=True, help="Product name.")
@click.option("--price", required=True, help="Tax-inclusive unit price (e.g. 5000).")
@click.option("--tax-rate", default="0", show_default=True, help="Tax rate in percent.")
@click.option("--id", "product_id", default=None, help="Explicit product ID.")
@click.option("--category", default=None, help="Category label.")
@click.option("--prescription", is_flag=True, default=False, help="Requires a prescription.")
def product_add(
    name: str,
    price: str,
    tax_rate: str,
    product_id: str | None,
    category: str | None,
    prescription: bool,
) -> None:
    """Add a new product to the catalog."""
    handler = add_product_handler()

    try:
        product = handler.handle(
            name=name,
            price_ttc=price,
            tax_rate=tax_rate,
            prescription_required=prescription,
            category=category,
            product_id=product_id,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Product #{product.id} '{product.name}' added at {product.price_ttc}")


@click.command("list")
def product_list() -> None:
    """List all products in the catalog."""
    products = store().products()

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<8} {'Name':<24} {'Price TTC':>14} {'Tax %':>6} {'Rx':>3} {'Active':>7}")
    click.echo("-" * 67)
    for p in sorted(products, key=lambda p: p.id):
        click.echo(
            f"{p.id:<8} {p.name:<24} {str(p.price_ttc):>14} {str(p.tax_rate):>6} "
            f"{'yes' if p.is_prescription_required else 'no':>3} "
            f"{'yes' if p.is_active else 'no':>7}"
        )

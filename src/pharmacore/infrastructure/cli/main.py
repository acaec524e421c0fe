import click

from pharmacore.infrastructure.cli.order_commands import (
    order_create,
    order_expire,
    order_expired,
    order_list,
    order_show,
    order_transition,
)
from pharmacore.infrastructure.cli.product_commands import product_add, product_list
from pharmacore.infrastructure.cli.stock_commands import (
    stock_adjust,
    stock_available,
    stock_history,
    stock_low,
    stock_receive,
    stock_set,
    stock_show,
    stock_value,
    stock_writeoff,
)
from pharmacore.infrastructure.logging import configure_logging


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging on stderr.")
def cli(verbose: bool) -> None:
    """Pharmacy stock ledger and order fulfillment."""
    configure_logging(verbose)


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def product() -> None:
    """Manage the product catalog."""


@cli.group()
def stock() -> None:
    """Manage stock levels and the movement ledger."""


# Register subcommands
order.add_command(order_create)
order.add_command(order_expire)
order.add_command(order_expired)
order.add_command(order_list)
order.add_command(order_show)
order.add_command(order_transition)
product.add_command(product_add)
product.add_command(product_list)
stock.add_command(stock_adjust)
stock.add_command(stock_available)
stock.add_command(stock_history)
stock.add_command(stock_low)
stock.add_command(stock_receive)
stock.add_command(stock_set)
stock.add_command(stock_show)
stock.add_command(stock_value)
stock.add_command(stock_writeoff)

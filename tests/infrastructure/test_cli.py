"""End-to-end tests of the command line against a temporary data directory."""

import logging

import pytest
from click.testing import CliRunner

from pharmacore.infrastructure import bootstrap
from pharmacore.infrastructure.cli.main import cli


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.setenv("PHARMACORE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PHARMACORE_DELIVERY_FEE", "2000")
    monkeypatch.setenv("PHARMACORE_BACKOFF_MS", "0")
    bootstrap.settings.cache_clear()
    bootstrap.store.cache_clear()
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    runner = CliRunner()

    def invoke(*args: str):
        return runner.invoke(cli, list(args))

    yield invoke

    root.handlers, root.level = handlers, level
    bootstrap.settings.cache_clear()
    bootstrap.store.cache_clear()


@pytest.fixture
def stocked(run):
    assert run("product", "add", "--name", "Paracetamol 500mg", "--price", "5000", "--id", "P001").exit_code == 0
    assert run("stock", "set", "--product", "P001", "--quantity", "10").exit_code == 0
    return run


class TestProductCommands:

    def test_add_and_list(self, run):
        result = run("product", "add", "--name", "Amoxicilline", "--price", "1180", "--tax-rate", "18", "--prescription")
        assert result.exit_code == 0
        assert "Product #1 'Amoxicilline' added at 1180.00 GNF" in result.output

        listing = run("product", "list")
        assert "Amoxicilline" in listing.output

    def test_duplicate_is_an_error(self, run):
        run("product", "add", "--name", "Sirop", "--price", "900")
        result = run("product", "add", "--name", "Sirop", "--price", "900")
        assert result.exit_code == 1
        assert "already exists" in result.output


class TestOrderCommands:

    def test_create_show_and_transition(self, stocked):
        created = stocked("order", "create", "--customer", "C-1", "--items", "P001:3", "--actor", "alice")
        assert created.exit_code == 0, created.output
        assert "status=pending" in created.output
        assert "15000.00 GNF" in created.output

        assert stocked("stock", "available", "--product", "P001").output.strip() == "7"

        moved = stocked("order", "transition", "--id", "1", "--to", "confirmed")
        assert moved.exit_code == 0
        assert "is now confirmed" in moved.output

        shown = stocked("order", "show", "--id", "1")
        assert "confirmed by cli" in shown.output

    def test_invalid_transition_is_reported(self, stocked):
        stocked("order", "create", "--customer", "C-1", "--items", "P001:1")
        result = stocked("order", "transition", "--id", "1", "--to", "delivered")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_insufficient_stock_is_reported(self, stocked):
        result = stocked("order", "create", "--customer", "C-1", "--items", "P001:11")
        assert result.exit_code == 1
        assert "P001" in result.output
        assert "No orders found." in stocked("order", "list").output

    def test_malformed_items(self, stocked):
        result = stocked("order", "create", "--customer", "C-1", "--items", "P001")
        assert result.exit_code == 2
        assert "ProductID:Quantity" in result.output

    def test_reservation_shows_its_expiry(self, stocked):
        created = stocked("order", "create", "--customer", "C-1", "--items", "P001:2", "--type", "reservation")
        assert created.exit_code == 0, created.output
        assert "Expires:" in created.output

    def test_expiry_sweep_leaves_fresh_reservations(self, stocked):
        stocked("order", "create", "--customer", "C-1", "--items", "P001:2", "--type", "reservation")

        assert "No expired reservations." in stocked("order", "expired").output
        swept = stocked("order", "expire", "--actor", "cron")
        assert swept.exit_code == 0, swept.output
        assert "0 reservation(s) expired." in swept.output
        assert "status=pending" in stocked("order", "show", "--id", "1").output

    def test_counter_sale(self, stocked):
        result = stocked(
            "order", "create", "--customer", "C-9", "--items", "P001:2", "--type", "vente_pos", "--counter", "--paid"
        )
        assert result.exit_code == 0, result.output
        assert "status=delivered" in result.output
        assert stocked("stock", "available", "--product", "P001").output.strip() == "8"


class TestStockCommands:

    def test_receive_and_history(self, stocked):
        received = stocked("stock", "receive", "--product", "P001", "--quantity", "40", "--reference", "BL-17")
        assert received.exit_code == 0
        assert "10 -> 50" in received.output

        history = stocked("stock", "history", "--product", "P001")
        lines = [line for line in history.output.splitlines() if "BL-17" in line or "Initial" in line]
        assert "BL-17" in lines[0]

    def test_adjust_requires_direction(self, stocked):
        result = stocked("stock", "adjust", "--product", "P001", "--quantity", "3")
        assert result.exit_code == 2

    def test_low_and_value(self, stocked):
        stocked("stock", "writeoff", "--product", "P001", "--quantity", "4", "--type", "expiry")
        low = stocked("stock", "low")
        assert "low_stock" in low.output

        value = stocked("stock", "value")
        assert "P001" in value.output
        row = [line for line in value.output.splitlines() if line.startswith("P001")][0]
        assert row.split() == ["P001", "10", "4", "6", "0.00", "GNF", "0.00", "GNF"]

    def test_receive_with_cost_and_batch(self, stocked):
        received = stocked(
            "stock", "receive", "--product", "P001", "--quantity", "20", "--reference", "BL-18",
            "--unit-cost", "2500", "--batch", "LOT-7", "--expiry", "2027-06-30",
        )
        assert received.exit_code == 0, received.output
        assert "cost 2500.00 GNF per unit, 50000.00 GNF in total" in received.output
        assert "batch LOT-7, expires 2027-06-30" in received.output

        value = stocked("stock", "value")
        row = [line for line in value.output.splitlines() if line.startswith("P001")][0]
        assert row.split() == ["P001", "30", "0", "30", "50000.00", "GNF", "1666.67", "GNF"]

    def test_receive_rejects_a_malformed_expiry(self, stocked):
        result = stocked("stock", "receive", "--product", "P001", "--quantity", "1", "--expiry", "30/06/2027")
        assert result.exit_code == 2

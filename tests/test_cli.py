"""Tests for the command-line entry point."""

import json
from decimal import Decimal
from unittest.mock import patch

import pytest

from delivery_ledger.__main__ import _reconcile, build_parser, main
from delivery_ledger.ledger import DeliveryLedger
from delivery_ledger.models import Table


def _json_lines(output: str) -> list[dict]:
    """Command results, skipping any log lines on the same stream."""
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class TestParser:
    """Tests for argument parsing."""

    def test_reconcile_arguments(self):
        args = build_parser().parse_args(["reconcile", "--month=6", "--year=2025", "--concurrency=4"])

        assert (args.command, args.month, args.year, args.concurrency) == ("reconcile", 6, 2025, 4)

    def test_month_requires_customer(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["month"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    """Tests for command handlers."""

    @pytest.mark.asyncio
    async def test_reconcile_prints_results(self, store, customer, capsys):
        await store.save_customer(customer)
        ledger = DeliveryLedger(store, price_per_liter=Decimal("100"))
        args = build_parser().parse_args(["reconcile", "--month=6", "--year=2025"])

        code = await _reconcile(ledger, args)

        results = _json_lines(capsys.readouterr().out)
        assert code == 0
        assert [r["outcome"] for r in results] == ["created"]

    @pytest.mark.asyncio
    async def test_main_uses_configured_store(self, store, customer, capsys):
        """Test a full reconcile run against an in-memory store."""
        await store.save_customer(customer)

        with (
            patch("delivery_ledger.__main__.RestLedgerStore", return_value=store),
            patch("delivery_ledger.__main__.configure_logging"),
        ):
            code = await main(["reconcile", "--month=6", "--year=2025"])

        assert code == 0
        assert store.row_count(Table.PAYMENT_ENTRY) == 1
        results = _json_lines(capsys.readouterr().out)
        assert [r["customer_id"] for r in results] == [customer.id]

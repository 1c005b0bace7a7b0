"""Command-line entry point for the delivery ledger.

Usage:
    # Backfill payment entries for a billing period
    python -m delivery_ledger reconcile --month=6 --year=2025

    # Print a customer's month view and attendance
    python -m delivery_ledger month CUSTOMER_ID --month=6 --year=2025

    # Follow the change feed and log projection sizes
    python -m delivery_ledger watch
"""

import argparse
import asyncio
import json
import sys
from datetime import date

import structlog

from delivery_ledger.config import bind_run_context, configure_logging
from delivery_ledger.errors import LedgerError
from delivery_ledger.ledger import DeliveryLedger
from delivery_ledger.projection import ProjectionApplier, snapshot_summary
from delivery_ledger.store.rest import RestLedgerStore

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    today = date.today()
    parser = argparse.ArgumentParser(
        prog="delivery_ledger",
        description="Delivery ledger and billing reconciliation",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    reconcile = commands.add_parser("reconcile", help="Create missing payment entries")
    reconcile.add_argument("--month", type=int, default=today.month)
    reconcile.add_argument("--year", type=int, default=today.year)
    reconcile.add_argument(
        "--concurrency", type=int, default=None, help="Customers reconciled in parallel"
    )

    month = commands.add_parser("month", help="Show a customer's month view")
    month.add_argument("customer_id")
    month.add_argument("--month", type=int, default=today.month)
    month.add_argument("--year", type=int, default=today.year)

    commands.add_parser("watch", help="Follow the change feed")
    return parser


async def _reconcile(ledger: DeliveryLedger, args: argparse.Namespace) -> int:
    results = await ledger.ensure_payment_entries(args.month, args.year)
    for result in results:
        print(json.dumps(result.to_dict()))
    return 1 if any(r.error for r in results) else 0


async def _month(ledger: DeliveryLedger, args: argparse.Namespace) -> int:
    slots = await ledger.reconstruct_month(args.customer_id, args.month, args.year)
    for slot in slots:
        print(f"{slot.delivery_date.isoformat()}  {slot.status.value:<9}  {slot.quantity}")
    summary = await ledger.attendance(args.customer_id, args.month, args.year, date.today())
    print(json.dumps(summary.to_dict()))
    return 0


async def _watch(ledger: DeliveryLedger) -> int:
    applier = ProjectionApplier()
    applier.add_hook(
        lambda event, snapshot: logger.info(
            "change_applied",
            op=event.op.value,
            table=event.table.value,
            **snapshot_summary(snapshot),
        )
    )
    await applier.refresh(ledger.store)
    await applier.run(ledger.store.subscribe())
    return 0


async def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    bind_run_context(
        command=args.command, month=getattr(args, "month", None), year=getattr(args, "year", None)
    )

    async with RestLedgerStore() as store:
        ledger = DeliveryLedger(store, concurrency=getattr(args, "concurrency", None))
        try:
            if args.command == "reconcile":
                return await _reconcile(ledger, args)
            if args.command == "month":
                return await _month(ledger, args)
            return await _watch(ledger)
        except KeyboardInterrupt:
            logger.info("interrupted")
            return 0
        except LedgerError as e:
            logger.error("command_failed", command=args.command, error=str(e))
            return 1


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

#!/usr/bin/env python3
"""
Stock Ledger Check - compare every item's stock level with its ledger.

Usage:
    python scripts/check_stock_ledger.py              # report drift only
    python scripts/check_stock_ledger.py --repair     # rebuild drifted items
    python scripts/check_stock_ledger.py --item 12    # check a single item

Exit status is 1 when drift was found and not repaired.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffice.core.exceptions import StockLedgerError
from backoffice.db.session import SessionLocal
from backoffice.services.stock_projection import StockProjection

logger = logging.getLogger("check_stock_ledger")


def run(db, repair: bool = False, item_id=None) -> int:
    """Report drift and optionally repair it. Returns the process exit code."""
    projection = StockProjection(db)
    if item_id is not None:
        try:
            report = projection.check_item(item_id)
        except StockLedgerError as e:
            print(f"Cannot check item {item_id}: {e.message}")
            return 1
        drifted = [report] if report["drift"] != 0 else []
    else:
        drifted = projection.find_drift()

    if not drifted:
        print("No drift: every stock level matches its ledger.")
        return 0

    unrepaired = 0
    for row in drifted:
        print(
            f"Item {row['item_id']} ({row['name']}): stock {row['materialized']}, "
            f"ledger {row['ledger']}, drift {row['drift']}"
        )
        if not repair:
            unrepaired += 1
            continue
        try:
            result = projection.rebuild_item(row["item_id"])
            print(f"  rebuilt: {result['previous']} -> {result['rebuilt']}")
        except StockLedgerError as e:
            unrepaired += 1
            print(f"  not rebuilt: {e.message}")

    print(f"{len(drifted)} item(s) drifted, {unrepaired} left unrepaired.")
    return 1 if unrepaired else 0


def main():
    parser = argparse.ArgumentParser(description="Check stock levels against the stock ledger")
    parser.add_argument("--repair", action="store_true", help="Reset drifted stock levels to their ledger sums")
    parser.add_argument("--item", type=int, help="Check only this inventory item id")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every ledger read")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    db = SessionLocal()
    try:
        return run(db, repair=args.repair, item_id=args.item)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())

"""Stock Projection - treats ``current_stock`` as a cache over the ledger.

The materialized level of every item must equal the sum of its ledger
entries. These helpers measure drift between the two and can rebuild the
cache by replaying the ledger. A rebuild never writes a ledger entry: the
ledger is the record, the stock column is what gets repaired.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.core.exceptions import NotFoundError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.inventory_item import InventoryItem
from backoffice.models.stock_mutation import StockMutation
from backoffice.services.stock_mutator import StockMutator, as_quantity

logger = logging.getLogger(__name__)


class StockProjection:

    def __init__(self, db: Session):
        self.db = db

    def ledger_balance(self, item_id: int) -> Decimal:
        """Sum of all ledger entries for an item (zero when there are none)."""
        total = (
            self.db.query(func.coalesce(func.sum(StockMutation.quantity_change), 0))
            .filter(StockMutation.item_id == item_id)
            .scalar()
        )
        return as_quantity(total or 0)

    def _ledger_balances(self) -> Dict[int, Decimal]:
        rows = (
            self.db.query(StockMutation.item_id, func.sum(StockMutation.quantity_change))
            .group_by(StockMutation.item_id)
            .all()
        )
        return {item_id: as_quantity(total or 0) for item_id, total in rows}

    @staticmethod
    def _report(item: InventoryItem, ledger: Decimal) -> Dict[str, Any]:
        materialized = as_quantity(item.current_stock)
        return {
            "item_id": item.id,
            "name": item.name,
            "materialized": materialized,
            "ledger": ledger,
            "drift": materialized - ledger,
        }

    def check_item(self, item_id: int) -> Dict[str, Any]:
        item = self.db.get(InventoryItem, item_id, populate_existing=True)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return self._report(item, self.ledger_balance(item_id))

    def find_drift(self) -> List[Dict[str, Any]]:
        """Items whose stock level disagrees with their ledger, active or not."""
        balances = self._ledger_balances()
        drifted = []
        for item in self.db.query(InventoryItem).order_by(InventoryItem.id).populate_existing():
            report = self._report(item, balances.get(item.id, as_quantity(0)))
            if report["drift"] != 0:
                drifted.append(report)
        return drifted

    def rebuild_item(self, item_id: int) -> Dict[str, Any]:
        """Reset ``current_stock`` to the ledger sum and report what changed.

        A negative ledger sum raises ``ValidationError`` and changes nothing.
        """
        with unit_of_work(self.db):
            balance = self.ledger_balance(item_id)
            item, previous = StockMutator(self.db).set_stock(item_id, balance, allow_inactive=True)
        if previous != balance:
            logger.warning("Rebuilt stock for item %s: %s -> %s", item_id, previous, balance)
        return {
            "item_id": item_id,
            "previous": previous,
            "rebuilt": as_quantity(item.current_stock),
            "changed": previous != balance,
        }

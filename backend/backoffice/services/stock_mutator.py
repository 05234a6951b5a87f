"""Stock Mutator - the only code path that writes ``InventoryItem.current_stock``.

Relative changes are applied with a single conditional UPDATE:

    UPDATE inventory_items
       SET current_stock = round(current_stock + :delta, 3)
     WHERE id = :item_id
       AND current_stock + :delta >= -0.0005   -- only for guarded decrements

and the affected-row count tells us whether the guard held. Two concurrent
decrements can therefore never both read a stale level and drive stock below
zero; the loser simply matches no row. SQLite keeps NUMERIC values as REAL, so
the sum is rounded back to the quantity step and the guard allows half a step
of float error.

Absolute writes (stocktake completion, manual counts, cache rebuilds) lock the
item row first so the previous level they report is the one they replace.

The mutator never commits. Callers run it inside ``unit_of_work`` together
with the paired ledger entry.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from backoffice.core.exceptions import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from backoffice.db.unit_of_work import lock_row
from backoffice.models.inventory_item import InventoryItem

logger = logging.getLogger(__name__)

# Stock quantities are stored with three decimal places (grams, millilitres).
QUANTITY_STEP = Decimal("0.001")
QUANTITY_PLACES = 3


def as_quantity(value) -> Decimal:
    """Coerce ints, floats, strings and Decimals to a stock quantity."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid quantity: {value!r}")
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid quantity: {value!r}")
    if not quantity.is_finite():
        raise ValidationError(f"Invalid quantity: {value!r}")
    return quantity.quantize(QUANTITY_STEP)


class StockMutator:
    """Apply signed deltas and absolute counts to an item's stock level."""

    def __init__(self, db: Session):
        self.db = db

    def _get_item(self, item_id: int) -> InventoryItem:
        item = self.db.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return item

    def apply_delta(
        self,
        item_id: int,
        delta,
        allow_negative: bool = False,
        allow_inactive: bool = False,
    ) -> InventoryItem:
        """Add ``delta`` to the item's stock and return the refreshed item.

        Args:
            item_id: Inventory item to change.
            delta: Signed quantity; negative values deduct.
            allow_negative: Skip the non-negative guard for this call.
            allow_inactive: Permit changes to a deactivated item. Only
                reversals of earlier entries should pass this.

        Raises:
            NotFoundError: Unknown item.
            InvalidStateError: Item is deactivated.
            InsufficientStockError: A guarded decrement would go below zero.
                Nothing has been written when this is raised.
        """
        delta = as_quantity(delta)
        item = self._get_item(item_id)
        if not item.is_active and not allow_inactive:
            raise InvalidStateError(f"Inventory item {item_id} is inactive", current_status="inactive")

        if delta == 0:
            return item

        stmt = (
            update(InventoryItem)
            .where(InventoryItem.id == item_id)
            .values(current_stock=func.round(InventoryItem.current_stock + delta, QUANTITY_PLACES))
            .execution_options(synchronize_session=False)
        )
        if delta < 0 and not allow_negative:
            stmt = stmt.where(InventoryItem.current_stock + delta >= -QUANTITY_STEP / 2)

        result = self.db.execute(stmt)
        if result.rowcount == 0:
            available = self.db.execute(
                select(InventoryItem.current_stock).where(InventoryItem.id == item_id)
            ).scalar_one()
            logger.warning(
                "Rejected stock change for item %s: delta %s, available %s",
                item_id, delta, available,
            )
            raise InsufficientStockError(
                item_id=item_id,
                available=as_quantity(available),
                requested=-delta,
                item_name=item.name,
                unit=item.unit,
            )

        self.db.refresh(item)
        logger.debug("Item %s stock changed by %s to %s", item_id, delta, item.current_stock)
        return item

    def set_stock(
        self,
        item_id: int,
        new_stock,
        allow_inactive: bool = False,
    ) -> Tuple[InventoryItem, Decimal]:
        """Overwrite the item's stock with an absolute quantity.

        Returns the refreshed item and the level it had before, read under a
        row lock so the caller can record the exact difference.
        """
        new_stock = as_quantity(new_stock)
        if new_stock < 0:
            raise ValidationError(f"Stock level cannot be negative: {new_stock}")

        item = lock_row(self.db, InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        if not item.is_active and not allow_inactive:
            raise InvalidStateError(f"Inventory item {item_id} is inactive", current_status="inactive")

        previous = as_quantity(item.current_stock)
        if previous != new_stock:
            self.db.execute(
                update(InventoryItem)
                .where(InventoryItem.id == item_id)
                .values(current_stock=new_stock)
                .execution_options(synchronize_session=False)
            )
            self.db.refresh(item)
        return item, previous

"""Item catalog and direct stock adjustments.

``adjust_stock`` and ``set_stock`` are the two places a stock change is paired
with its ledger entry. Every other service goes through them.
"""

import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.inventory_item import InventoryItem, InventoryType
from backoffice.models.stock_mutation import ReferenceType, StockAction, StockMutation
from backoffice.models.supplier import Supplier
from backoffice.services.ledger import LedgerRecorder
from backoffice.services.stock_mutator import StockMutator, as_quantity

logger = logging.getLogger(__name__)

# Fields updateItem may change. current_stock is never among them.
EDITABLE_FIELDS = (
    "name",
    "unit",
    "inventory_type",
    "minimum_stock",
    "cost_per_unit",
    "buying_price",
    "supplier_id",
)


class InventoryService:
    """Item catalog operations plus ledgered stock adjustments."""

    def __init__(self, db: Session):
        self.db = db
        self.mutator = StockMutator(db)
        self.ledger = LedgerRecorder(db)

    # ===== CATALOG =====

    def get_item(self, item_id: int) -> InventoryItem:
        item = self.db.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return item

    def _check_supplier(self, supplier_id: Optional[int]) -> None:
        if supplier_id is not None and self.db.get(Supplier, supplier_id) is None:
            raise NotFoundError("Supplier", supplier_id)

    def create_item(
        self,
        name: str,
        unit: str = "unit",
        inventory_type: InventoryType = InventoryType.BAR,
        minimum_stock=0,
        cost_per_unit=0,
        buying_price=None,
        supplier_id: Optional[int] = None,
        opening_stock=0,
        actor_id: Optional[int] = None,
    ) -> InventoryItem:
        """Create an item. Opening stock is booked as an ``opening_balance`` entry."""
        opening_stock = as_quantity(opening_stock)
        if opening_stock < 0:
            raise ValidationError("Opening stock cannot be negative")
        if as_quantity(minimum_stock) < 0:
            raise ValidationError("Minimum stock cannot be negative")

        with unit_of_work(self.db):
            self._check_supplier(supplier_id)
            item = InventoryItem(
                name=name,
                unit=unit,
                inventory_type=InventoryType(inventory_type),
                current_stock=0,
                minimum_stock=as_quantity(minimum_stock),
                cost_per_unit=cost_per_unit,
                buying_price=buying_price,
                supplier_id=supplier_id,
                is_active=True,
            )
            self.db.add(item)
            self.db.flush()

            if opening_stock > 0:
                self.adjust_stock(
                    item.id,
                    opening_stock,
                    StockAction.OPENING_BALANCE,
                    reference_type=ReferenceType.INVENTORY_ITEM,
                    reference_id=item.id,
                    actor_id=actor_id,
                    notes="Opening balance",
                )

        self.db.refresh(item)
        logger.info("Created inventory item %s (%s) with opening stock %s", item.id, name, opening_stock)
        return item

    def update_item(self, item_id: int, **changes: Any) -> InventoryItem:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        with unit_of_work(self.db):
            item = self.get_item(item_id)
            if "supplier_id" in changes:
                self._check_supplier(changes["supplier_id"])
            if changes.get("minimum_stock") is not None and as_quantity(changes["minimum_stock"]) < 0:
                raise ValidationError("Minimum stock cannot be negative")
            for field, value in changes.items():
                if field == "inventory_type" and value is not None:
                    value = InventoryType(value)
                setattr(item, field, value)

        self.db.refresh(item)
        return item

    def deactivate_item(self, item_id: int) -> InventoryItem:
        """Soft delete: the item stays so ledger references remain valid."""
        with unit_of_work(self.db):
            item = self.get_item(item_id)
            item.is_active = False
        self.db.refresh(item)
        logger.info("Deactivated inventory item %s", item_id)
        return item

    def list_items(
        self,
        inventory_type: Optional[InventoryType] = None,
        low_stock: bool = False,
        search: Optional[str] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[InventoryItem], int]:
        query = self.db.query(InventoryItem)
        if not include_inactive:
            query = query.filter(InventoryItem.is_active.is_(True))
        if inventory_type is not None:
            query = query.filter(InventoryItem.inventory_type == InventoryType(inventory_type))
        if low_stock:
            query = query.filter(InventoryItem.current_stock <= InventoryItem.minimum_stock)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(InventoryItem.name.ilike(pattern), InventoryItem.unit.ilike(pattern)))

        total = query.count()
        items = query.order_by(InventoryItem.name, InventoryItem.id).offset(skip).limit(limit).all()
        return items, total

    def low_stock_items(self) -> List[InventoryItem]:
        """Active items at or below their reorder threshold."""
        return (
            self.db.query(InventoryItem)
            .filter(
                InventoryItem.is_active.is_(True),
                InventoryItem.current_stock <= InventoryItem.minimum_stock,
            )
            .order_by(InventoryItem.name)
            .all()
        )

    # ===== STOCK =====

    def adjust_stock(
        self,
        item_id: int,
        delta,
        action: StockAction,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
        allow_negative: bool = False,
        allow_inactive: bool = False,
    ) -> Tuple[InventoryItem, StockMutation]:
        """Apply a signed delta and record it, atomically.

        Joins the caller's unit of work when there is one, so an
        ``InsufficientStockError`` here rolls back everything the caller
        wrote alongside it.
        """
        with unit_of_work(self.db):
            item = self.mutator.apply_delta(
                item_id, delta, allow_negative=allow_negative, allow_inactive=allow_inactive
            )
            entry = self.ledger.record(
                item_id,
                action,
                delta,
                reference_type=reference_type,
                reference_id=reference_id,
                actor_id=actor_id,
                notes=notes,
            )
        return item, entry

    def set_stock(
        self,
        item_id: int,
        counted_quantity,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
        action: StockAction = StockAction.MANUAL_ADJUSTMENT,
        reference_type: Optional[str] = ReferenceType.MANUAL,
        reference_id: Optional[int] = None,
        allow_inactive: bool = False,
    ) -> Tuple[InventoryItem, Optional[StockMutation]]:
        """Overwrite stock with a counted quantity.

        The ledger entry carries ``counted - previous`` so the ledger still sums
        to the stock level. No entry is written when nothing changed.
        """
        with unit_of_work(self.db):
            item, previous = self.mutator.set_stock(item_id, counted_quantity, allow_inactive=allow_inactive)
            difference = as_quantity(item.current_stock) - previous
            entry = None
            if difference != 0:
                entry = self.ledger.record(
                    item_id,
                    action,
                    difference,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    actor_id=actor_id,
                    notes=notes,
                )
        return item, entry

    def history(self, item_id: Optional[int] = None, **filters: Any) -> Tuple[List[StockMutation], int]:
        if item_id is not None:
            self.get_item(item_id)
        return self.ledger.history(item_id=item_id, **filters)


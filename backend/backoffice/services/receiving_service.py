"""Receiving Reconciler - purchase orders and goods receipt.

Receiving is expressed as cumulative totals per line ("we now have 30 of the
30 ordered"), not as increments. For each line the requested total is clamped
to ``[0, quantity_ordered]`` and only the part above what was already received
becomes stock:

    clamped  = min(max(requested, 0), ordered)     # ordered unset -> requested
    received = max(previous, clamped)              # never goes down
    delta    = received - previous                 # credited only when > 0

Replaying the same receive request is therefore a no-op, and an over-receipt
can never push a line past what was ordered. The purchase order row is locked
for the whole call so two concurrent receipts cannot both start from the same
``previous``.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.db.unit_of_work import lock_row, unit_of_work
from backoffice.models.inventory_item import InventoryItem
from backoffice.models.purchase_order import PurchaseOrder, PurchaseOrderLine, PurchaseOrderStatus
from backoffice.models.stock_mutation import ReferenceType, StockAction
from backoffice.services.inventory_service import InventoryService
from backoffice.services.numbering import assign_document_number
from backoffice.services.stock_mutator import as_quantity
from backoffice.services.supplier_service import SupplierService

logger = logging.getLogger(__name__)


def clamp_received(requested: Decimal, ordered: Optional[Decimal]) -> Decimal:
    """Bound a requested cumulative received quantity to what was ordered."""
    requested = max(as_quantity(requested), Decimal("0"))
    if ordered is None or ordered <= 0:
        return requested
    return min(requested, as_quantity(ordered))


class ReceivingService:
    """Purchase order lifecycle: create, receive (partially or fully), cancel."""

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    def get_purchase_order(self, order_id: int) -> PurchaseOrder:
        po = self.db.get(PurchaseOrder, order_id)
        if po is None:
            raise NotFoundError("Purchase order", order_id)
        return po

    def list_purchase_orders(
        self,
        status: Optional[PurchaseOrderStatus] = None,
        supplier_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[PurchaseOrder], int]:
        query = self.db.query(PurchaseOrder)
        if status is not None:
            query = query.filter(PurchaseOrder.status == PurchaseOrderStatus(status))
        if supplier_id is not None:
            query = query.filter(PurchaseOrder.supplier_id == supplier_id)
        total = query.count()
        orders = query.order_by(PurchaseOrder.id.desc()).offset(skip).limit(limit).all()
        return orders, total

    def create_purchase_order(
        self,
        supplier_id: int,
        lines: Iterable[Dict[str, Any]],
        order_date: Optional[date] = None,
        expected_delivery_date: Optional[date] = None,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> PurchaseOrder:
        """Create a pending purchase order.

        Each line is a mapping with ``inventory_item_id``, ``quantity_ordered``
        and ``unit_cost``.
        """
        lines = list(lines)
        if not lines:
            raise ValidationError("A purchase order needs at least one line")

        with unit_of_work(self.db):
            SupplierService(self.db).get_supplier(supplier_id)
            po = PurchaseOrder(
                supplier_id=supplier_id,
                order_date=order_date or date.today(),
                expected_delivery_date=expected_delivery_date,
                status=PurchaseOrderStatus.PENDING,
                notes=notes,
                created_by=actor_id,
            )
            total = Decimal("0")
            for line in lines:
                item_id = line["inventory_item_id"]
                if self.db.get(InventoryItem, item_id) is None:
                    raise NotFoundError("Inventory item", item_id)
                ordered = as_quantity(line.get("quantity_ordered", 0))
                unit_cost = Decimal(str(line.get("unit_cost") or 0))
                if ordered < 0 or unit_cost < 0:
                    raise ValidationError("Ordered quantity and unit cost cannot be negative")
                po.lines.append(
                    PurchaseOrderLine(
                        inventory_item_id=item_id,
                        quantity_ordered=ordered,
                        quantity_received=Decimal("0"),
                        unit_cost=unit_cost,
                    )
                )
                total += ordered * unit_cost
            po.total_amount = total.quantize(Decimal("0.01"))
            self.db.add(po)
            assign_document_number(self.db, po, "po_number", "PO")

        self.db.refresh(po)
        logger.info("Created purchase order %s (%s lines, total %s)", po.po_number, len(lines), po.total_amount)
        return po

    def cancel_purchase_order(self, order_id: int, actor_id: Optional[int] = None) -> PurchaseOrder:
        """Cancel an order that is not fully received. Stock already received stays."""
        with unit_of_work(self.db):
            po = self._lock(order_id)
            if po.status == PurchaseOrderStatus.RECEIVED:
                raise InvalidStateError(
                    f"Purchase order {po.po_number} is already received",
                    current_status=po.status.value,
                )
            if po.status != PurchaseOrderStatus.CANCELLED:
                po.status = PurchaseOrderStatus.CANCELLED
                logger.info("Cancelled purchase order %s by %s", po.po_number, actor_id)
        self.db.refresh(po)
        return po

    def _lock(self, order_id: int) -> PurchaseOrder:
        po = lock_row(self.db, PurchaseOrder, order_id)
        if po is None:
            raise NotFoundError("Purchase order", order_id)
        return po

    def receive(
        self,
        order_id: int,
        receipts: Iterable[Dict[str, Any]],
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Apply cumulative received quantities to a purchase order.

        Args:
            order_id: Purchase order to receive against.
            receipts: Mappings with ``line_id`` and ``quantity_received`` (the
                cumulative total for that line, not an increment).
            actor_id: Staff member receiving the goods.

        Returns:
            Dict with the order, its resulting status and one entry per
            processed line with the delta that was credited.

        Raises:
            NotFoundError: Unknown purchase order.
            InvalidStateError: The order was cancelled.
        """
        applied: List[Dict[str, Any]] = []

        with unit_of_work(self.db):
            po = self._lock(order_id)
            if po.status == PurchaseOrderStatus.CANCELLED:
                raise InvalidStateError(
                    f"Purchase order {po.po_number} is cancelled", current_status=po.status.value
                )
            if po.status == PurchaseOrderStatus.RECEIVED:
                logger.info("Purchase order %s already received, nothing to do", po.po_number)
                return {"purchase_order": po, "status": po.status, "lines": applied}

            lines_by_id = {line.id: line for line in po.lines}
            for receipt in receipts:
                line = lines_by_id.get(receipt["line_id"])
                if line is None:
                    logger.warning(
                        "Skipping unknown line %s on purchase order %s", receipt["line_id"], po.po_number
                    )
                    continue

                previous = as_quantity(line.quantity_received or 0)
                clamped = clamp_received(receipt["quantity_received"], line.quantity_ordered)
                received = max(previous, clamped)
                delta = received - previous

                if delta > 0:
                    line.quantity_received = received
                    self.inventory.adjust_stock(
                        line.inventory_item_id,
                        delta,
                        StockAction.PURCHASE_RECEIVED,
                        reference_type=ReferenceType.PURCHASE_ORDER,
                        reference_id=po.id,
                        actor_id=actor_id,
                        notes=f"Received on {po.po_number}",
                    )

                applied.append({
                    "line_id": line.id,
                    "inventory_item_id": line.inventory_item_id,
                    "previous_received": previous,
                    "quantity_received": received,
                    "delta": delta if delta > 0 else Decimal("0"),
                })

            credited = any(entry["delta"] > 0 for entry in applied)
            if all(line.is_fully_received for line in po.lines):
                po.status = PurchaseOrderStatus.RECEIVED
            elif any((line.quantity_received or 0) > 0 for line in po.lines):
                po.status = PurchaseOrderStatus.PARTIALLY_RECEIVED

            if credited:
                po.actual_delivery_date = datetime.now(timezone.utc)
                po.received_by = actor_id

        self.db.refresh(po)
        logger.info(
            "Received purchase order %s: %s line(s) credited, status %s",
            po.po_number, sum(1 for entry in applied if entry["delta"] > 0), po.status.value,
        )
        return {"purchase_order": po, "status": po.status, "lines": applied}

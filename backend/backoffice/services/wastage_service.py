"""Wastage adapter: spoilage and breakage write-offs."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.inventory_item import InventoryItem
from backoffice.models.stock_mutation import ReferenceType, StockAction, StockMutation
from backoffice.models.wastage import WastageLog
from backoffice.services.inventory_service import InventoryService
from backoffice.services.stock_mutator import as_quantity

logger = logging.getLogger(__name__)


class WastageService:

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    def get_wastage(self, wastage_id: int) -> WastageLog:
        log = self.db.get(WastageLog, wastage_id)
        if log is None:
            raise NotFoundError("Wastage log", wastage_id)
        return log

    def list_wastage(
        self,
        item_id: Optional[int] = None,
        include_reversed: bool = True,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[WastageLog], int]:
        query = self.db.query(WastageLog)
        if item_id is not None:
            query = query.filter(WastageLog.inventory_item_id == item_id)
        if not include_reversed:
            query = query.filter(WastageLog.is_reversed.is_(False))
        total = query.count()
        logs = query.order_by(WastageLog.waste_date.desc(), WastageLog.id.desc()).offset(skip).limit(limit).all()
        return logs, total

    def record_wastage(
        self,
        item_id: int,
        quantity,
        reason: str,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
        waste_date: Optional[datetime] = None,
    ) -> StockMutation:
        """Write off stock. Never allowed to take stock below zero."""
        quantity = as_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Wasted quantity must be positive")
        if not reason:
            raise ValidationError("A wastage reason is required")

        with unit_of_work(self.db):
            self.inventory.get_item(item_id)
            log = WastageLog(
                inventory_item_id=item_id,
                quantity_wasted=quantity,
                reason=reason,
                waste_date=waste_date or datetime.now(timezone.utc),
                notes=notes,
                logged_by=actor_id,
            )
            self.db.add(log)
            self.db.flush()
            _, entry = self.inventory.adjust_stock(
                item_id,
                -quantity,
                StockAction.WASTAGE,
                reference_type=ReferenceType.WASTAGE_LOG,
                reference_id=log.id,
                actor_id=actor_id,
                notes=f"Wastage: {reason}",
                allow_negative=False,
            )

        logger.info("Wastage %s: %s of item %s (%s)", log.id, quantity, item_id, reason)
        return entry

    def reverse_wastage(self, wastage_id: int, actor_id: Optional[int] = None) -> StockMutation:
        """Undo a wastage record by crediting back exactly what it wrote off."""
        with unit_of_work(self.db):
            log = self.get_wastage(wastage_id)
            result = self.db.execute(
                update(WastageLog)
                .where(WastageLog.id == wastage_id, WastageLog.is_reversed.is_(False))
                .values(is_reversed=True, reversed_at=datetime.now(timezone.utc), reversed_by=actor_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError(f"Wastage log {wastage_id} is already reversed", current_status="reversed")
            self.db.refresh(log)
            _, entry = self.inventory.adjust_stock(
                log.inventory_item_id,
                log.quantity_wasted,
                StockAction.WASTAGE_REVERSAL,
                reference_type=ReferenceType.WASTAGE_LOG,
                reference_id=log.id,
                actor_id=actor_id,
                notes=f"Reversal of wastage {log.id}",
                allow_inactive=True,
            )

        logger.info("Reversed wastage %s by %s", wastage_id, actor_id)
        return entry

    def wastage_summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Totals of unreversed wastage grouped by reason."""
        query = (
            self.db.query(
                WastageLog.reason,
                func.count(WastageLog.id),
                func.sum(WastageLog.quantity_wasted),
                func.sum(WastageLog.quantity_wasted * InventoryItem.cost_per_unit),
            )
            .join(InventoryItem, InventoryItem.id == WastageLog.inventory_item_id)
            .filter(WastageLog.is_reversed.is_(False))
        )
        if start is not None:
            query = query.filter(WastageLog.waste_date >= start)
        if end is not None:
            query = query.filter(WastageLog.waste_date <= end)

        by_reason = []
        total_cost = Decimal("0.00")
        for reason, count, quantity, cost in query.group_by(WastageLog.reason).order_by(WastageLog.reason):
            cost = Decimal(str(cost or 0)).quantize(Decimal("0.01"))
            total_cost += cost
            by_reason.append({
                "reason": reason,
                "entries": count,
                "total_quantity": as_quantity(quantity or 0),
                "total_cost": cost,
            })
        return {
            "start": start,
            "end": end,
            "by_reason": by_reason,
            "total_entries": sum(row["entries"] for row in by_reason),
            "total_cost": total_cost,
        }

"""Return adapter: goods customers hand back, credited to stock."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.order import Order
from backoffice.models.product_return import ProductReturn
from backoffice.models.stock_mutation import ReferenceType, StockAction, StockMutation
from backoffice.services.inventory_service import InventoryService
from backoffice.services.stock_mutator import as_quantity

logger = logging.getLogger(__name__)


class ReturnService:

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    def get_return(self, return_id: int) -> ProductReturn:
        product_return = self.db.get(ProductReturn, return_id)
        if product_return is None:
            raise NotFoundError("Product return", return_id)
        return product_return

    def list_returns(
        self, item_id: Optional[int] = None, skip: int = 0, limit: int = 50
    ) -> Tuple[List[ProductReturn], int]:
        query = self.db.query(ProductReturn)
        if item_id is not None:
            query = query.filter(ProductReturn.inventory_item_id == item_id)
        total = query.count()
        returns = query.order_by(ProductReturn.id.desc()).offset(skip).limit(limit).all()
        return returns, total

    def record_return(
        self,
        item_id: int,
        quantity,
        actor_id: Optional[int] = None,
        order_id: Optional[int] = None,
        reason: Optional[str] = None,
        refund_amount=0,
        notes: Optional[str] = None,
    ) -> StockMutation:
        quantity = as_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Returned quantity must be positive")
        refund_amount = Decimal(str(refund_amount or 0))
        if refund_amount < 0:
            raise ValidationError("Refund amount cannot be negative")

        with unit_of_work(self.db):
            self.inventory.get_item(item_id)
            if order_id is not None and self.db.get(Order, order_id) is None:
                raise NotFoundError("Order", order_id)
            product_return = ProductReturn(
                inventory_item_id=item_id,
                order_id=order_id,
                quantity_returned=quantity,
                reason=reason,
                refund_amount=refund_amount,
                notes=notes,
                return_date=datetime.now(timezone.utc),
                processed_by=actor_id,
            )
            self.db.add(product_return)
            self.db.flush()
            _, entry = self.inventory.adjust_stock(
                item_id,
                quantity,
                StockAction.RETURN_INCREMENT,
                reference_type=ReferenceType.PRODUCT_RETURN,
                reference_id=product_return.id,
                actor_id=actor_id,
                notes=f"Return: {reason}" if reason else "Return",
            )

        logger.info("Return %s: %s of item %s back in stock", product_return.id, quantity, item_id)
        return entry

    def reverse_return(self, return_id: int, actor_id: Optional[int] = None) -> StockMutation:
        """Take a recorded return back out of stock, using its stored quantity."""
        with unit_of_work(self.db):
            product_return = self.get_return(return_id)
            result = self.db.execute(
                update(ProductReturn)
                .where(ProductReturn.id == return_id, ProductReturn.is_reversed.is_(False))
                .values(is_reversed=True, reversed_at=datetime.now(timezone.utc), reversed_by=actor_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError(f"Product return {return_id} is already reversed", current_status="reversed")
            self.db.refresh(product_return)
            _, entry = self.inventory.adjust_stock(
                product_return.inventory_item_id,
                -product_return.quantity_returned,
                StockAction.RETURN_REVERSAL,
                reference_type=ReferenceType.PRODUCT_RETURN,
                reference_id=product_return.id,
                actor_id=actor_id,
                notes=f"Reversal of return {product_return.id}",
                allow_inactive=True,
            )

        logger.info("Reversed return %s by %s", return_id, actor_id)
        return entry

    def return_summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Unreversed returns grouped by reason, with refunded totals."""
        query = (
            self.db.query(
                ProductReturn.reason,
                func.count(ProductReturn.id),
                func.sum(ProductReturn.quantity_returned),
                func.sum(ProductReturn.refund_amount),
            )
            .filter(ProductReturn.is_reversed.is_(False))
        )
        if start is not None:
            query = query.filter(ProductReturn.return_date >= start)
        if end is not None:
            query = query.filter(ProductReturn.return_date <= end)

        by_reason = []
        total_refund = Decimal("0.00")
        for reason, count, quantity, refund in query.group_by(ProductReturn.reason).order_by(ProductReturn.reason):
            refund = Decimal(str(refund or 0)).quantize(Decimal("0.01"))
            total_refund += refund
            by_reason.append({
                "reason": reason,
                "entries": count,
                "total_quantity": as_quantity(quantity or 0),
                "total_refund": refund,
            })
        return {
            "start": start,
            "end": end,
            "by_reason": by_reason,
            "total_entries": sum(row["entries"] for row in by_reason),
            "total_refund": total_refund,
        }

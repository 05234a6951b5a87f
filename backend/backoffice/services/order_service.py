"""Order creation with bar-sale stock deduction.

An order, its lines, its payment and the stock deductions for its bar items are
written in one unit of work. If any bar item is short, ``InsufficientStockError``
propagates and none of it is kept.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.inventory_item import InventoryItem, InventoryType
from backoffice.models.order import (
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from backoffice.models.stock_mutation import ReferenceType, StockAction
from backoffice.services.inventory_service import InventoryService
from backoffice.services.stock_mutator import as_quantity

logger = logging.getLogger(__name__)


def generate_order_number() -> str:
    return f"ORD-{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S%f')}"


class OrderService:

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    def get_order(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(
        self, status: Optional[OrderStatus] = None, skip: int = 0, limit: int = 50
    ) -> Tuple[List[Order], int]:
        query = self.db.query(Order)
        if status is not None:
            query = query.filter(Order.status == OrderStatus(status))
        total = query.count()
        orders = query.order_by(Order.id.desc()).offset(skip).limit(limit).all()
        return orders, total

    def create_order(
        self,
        lines: Iterable[Dict[str, Any]],
        order_type: OrderType = OrderType.DINE_IN,
        payment_method: Optional[PaymentMethod] = None,
        customer_name: Optional[str] = None,
        table_number: Optional[str] = None,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Order:
        """Create an order and deduct stock for every line on an active bar item.

        Each line is a mapping with ``product_name``, ``quantity``,
        ``unit_price`` and optionally ``inventory_item_id``. When a payment
        method is given the order is paid in full and marked ``paid``.
        """
        lines = list(lines)
        if not lines:
            raise ValidationError("An order needs at least one line")

        with unit_of_work(self.db):
            order = Order(
                order_number=generate_order_number(),
                order_type=OrderType(order_type),
                status=OrderStatus.OPEN,
                customer_name=customer_name,
                table_number=table_number,
                notes=notes,
                created_by=actor_id,
            )
            self.db.add(order)
            self.db.flush()

            total = Decimal("0")
            for line in lines:
                quantity = as_quantity(line["quantity"])
                if quantity <= 0:
                    raise ValidationError("Order line quantity must be positive")
                unit_price = Decimal(str(line.get("unit_price") or 0))
                line_total = (quantity * unit_price).quantize(Decimal("0.01"))

                item_id = line.get("inventory_item_id")
                item = None
                if item_id is not None:
                    item = self.db.get(InventoryItem, item_id)
                    if item is None:
                        raise NotFoundError("Inventory item", item_id)

                order.lines.append(
                    OrderLine(
                        inventory_item_id=item_id,
                        product_name=line.get("product_name") or (item.name if item else ""),
                        quantity=quantity,
                        unit_price=unit_price,
                        line_total=line_total,
                    )
                )
                total += line_total

                if item is not None and item.is_active and item.inventory_type == InventoryType.BAR:
                    self.inventory.adjust_stock(
                        item.id,
                        -quantity,
                        StockAction.SALE,
                        reference_type=ReferenceType.ORDER,
                        reference_id=order.id,
                        actor_id=actor_id,
                        notes=f"Sale on {order.order_number}",
                        allow_negative=settings.sale_allow_negative_stock,
                    )

            order.total_amount = total
            if payment_method is not None:
                order.payments.append(
                    Payment(
                        amount=total,
                        payment_method=PaymentMethod(payment_method),
                        status=PaymentStatus.COMPLETED,
                        paid_at=datetime.now(timezone.utc),
                        processed_by=actor_id,
                    )
                )
                order.status = OrderStatus.PAID

        self.db.refresh(order)
        logger.info("Created order %s with %s line(s), total %s", order.order_number, len(lines), order.total_amount)
        return order

"""Purchase order and receiving schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from backoffice.models.purchase_order import PurchaseOrderStatus


class PurchaseOrderLineCreate(BaseModel):
    inventory_item_id: int
    quantity_ordered: Decimal = Field(gt=0)
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0)


class PurchaseOrderCreate(BaseModel):
    """Purchase order creation schema."""

    supplier_id: int
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    lines: List[PurchaseOrderLineCreate] = Field(min_length=1)


class PurchaseOrderLineResponse(BaseModel):
    id: int
    inventory_item_id: int
    quantity_ordered: Decimal
    quantity_received: Decimal
    unit_cost: Decimal

    model_config = {"from_attributes": True}


class PurchaseOrderResponse(BaseModel):
    """Purchase order response schema."""

    id: int
    po_number: str
    supplier_id: int
    order_date: date
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[datetime] = None
    status: PurchaseOrderStatus
    total_amount: Decimal
    notes: Optional[str] = None
    created_by: Optional[int] = None
    received_by: Optional[int] = None
    lines: List[PurchaseOrderLineResponse] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class LineReceipt(BaseModel):
    """Cumulative quantity received so far on one line."""

    line_id: int
    quantity_received: Decimal


class ReceiveRequest(BaseModel):
    lines: List[LineReceipt]


class AppliedReceipt(BaseModel):
    line_id: int
    inventory_item_id: int
    previous_received: Decimal
    quantity_received: Decimal
    delta: Decimal


class ReceiveResponse(BaseModel):
    """Result of a receive call: new status and what was credited per line."""

    status: PurchaseOrderStatus
    lines: List[AppliedReceipt]
    purchase_order: PurchaseOrderResponse

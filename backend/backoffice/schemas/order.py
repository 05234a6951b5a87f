"""Order schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from backoffice.models.order import OrderStatus, OrderType, PaymentMethod, PaymentStatus


class OrderLineCreate(BaseModel):
    product_name: str = Field(default="", max_length=255)
    quantity: Decimal = Field(gt=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    inventory_item_id: Optional[int] = None


class OrderCreate(BaseModel):
    """Order creation schema."""

    order_type: OrderType = OrderType.DINE_IN
    lines: List[OrderLineCreate] = Field(min_length=1)
    payment_method: Optional[PaymentMethod] = None
    customer_name: Optional[str] = None
    table_number: Optional[str] = None
    notes: Optional[str] = None


class OrderLineResponse(BaseModel):
    id: int
    inventory_item_id: Optional[int] = None
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: int
    amount: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus
    paid_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    """Order response schema."""

    id: int
    order_number: str
    order_type: OrderType
    status: OrderStatus
    customer_name: Optional[str] = None
    table_number: Optional[str] = None
    total_amount: Decimal
    notes: Optional[str] = None
    created_by: Optional[int] = None
    lines: List[OrderLineResponse] = []
    payments: List[PaymentResponse] = []
    created_at: datetime

    model_config = {"from_attributes": True}

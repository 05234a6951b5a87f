"""Wastage and product return schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class WastageCreate(BaseModel):
    """Wastage write-off schema."""

    inventory_item_id: int
    quantity: Decimal = Field(gt=0)
    reason: str = Field(min_length=1, max_length=100)
    notes: Optional[str] = None
    waste_date: Optional[datetime] = None


class WastageResponse(BaseModel):
    id: int
    inventory_item_id: int
    quantity_wasted: Decimal
    reason: str
    waste_date: datetime
    notes: Optional[str] = None
    logged_by: Optional[int] = None
    is_reversed: bool

    model_config = {"from_attributes": True}


class WastageReasonTotal(BaseModel):
    reason: str
    entries: int
    total_quantity: Decimal
    total_cost: Decimal


class WastageSummary(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    by_reason: List[WastageReasonTotal]
    total_entries: int
    total_cost: Decimal


class ProductReturnCreate(BaseModel):
    """Product return schema."""

    inventory_item_id: int
    quantity: Decimal = Field(gt=0)
    order_id: Optional[int] = None
    reason: Optional[str] = Field(default=None, max_length=255)
    refund_amount: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None


class ProductReturnResponse(BaseModel):
    id: int
    inventory_item_id: int
    order_id: Optional[int] = None
    quantity_returned: Decimal
    reason: Optional[str] = None
    refund_amount: Decimal
    notes: Optional[str] = None
    return_date: datetime
    processed_by: Optional[int] = None
    is_reversed: bool

    model_config = {"from_attributes": True}


class ReturnReasonTotal(BaseModel):
    reason: Optional[str] = None
    entries: int
    total_quantity: Decimal
    total_refund: Decimal


class ReturnSummary(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    by_reason: List[ReturnReasonTotal]
    total_entries: int
    total_refund: Decimal

"""Inventory item, stock adjustment and ledger schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from backoffice.models.inventory_item import InventoryType
from backoffice.models.stock_mutation import StockAction


class InventoryItemCreate(BaseModel):
    """Inventory item creation schema."""

    name: str = Field(min_length=1, max_length=255)
    unit: str = Field(default="unit", max_length=20)
    inventory_type: InventoryType = InventoryType.BAR
    minimum_stock: Decimal = Field(default=Decimal("0"), ge=0)
    cost_per_unit: Decimal = Field(default=Decimal("0"), ge=0)
    buying_price: Optional[Decimal] = Field(default=None, ge=0)
    supplier_id: Optional[int] = None
    opening_stock: Decimal = Field(default=Decimal("0"), ge=0)


class InventoryItemUpdate(BaseModel):
    """Descriptive fields only. Stock changes go through adjustments."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    unit: Optional[str] = Field(default=None, max_length=20)
    inventory_type: Optional[InventoryType] = None
    minimum_stock: Optional[Decimal] = Field(default=None, ge=0)
    cost_per_unit: Optional[Decimal] = Field(default=None, ge=0)
    buying_price: Optional[Decimal] = Field(default=None, ge=0)
    supplier_id: Optional[int] = None


class InventoryItemResponse(BaseModel):
    """Inventory item response schema."""

    id: int
    name: str
    unit: str
    inventory_type: InventoryType
    current_stock: Decimal
    minimum_stock: Decimal
    cost_per_unit: Decimal
    buying_price: Optional[Decimal] = None
    supplier_id: Optional[int] = None
    is_active: bool
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StockAdjustment(BaseModel):
    """Signed stock change with the reason it happened."""

    delta: Decimal
    action: StockAction = StockAction.MANUAL_ADJUSTMENT
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class StockCount(BaseModel):
    """Absolute counted quantity for a manual correction."""

    counted_quantity: Decimal = Field(ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class LedgerEntryResponse(BaseModel):
    """Ledger entry in its persisted shape."""

    id: int
    item_id: int
    action: StockAction
    quantity_change: Decimal
    reference_id: Optional[int] = None
    reference_type: Optional[str] = None
    logged_by: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class StockAdjustmentResponse(BaseModel):
    """Item after an adjustment plus the entry that recorded it."""

    item: InventoryItemResponse
    ledger_entry: Optional[LedgerEntryResponse] = None


class StockCheckResponse(BaseModel):
    """Materialized stock compared with the ledger sum."""

    item_id: int
    name: str
    materialized: Decimal
    ledger: Decimal
    drift: Decimal

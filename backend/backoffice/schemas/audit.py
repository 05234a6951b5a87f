"""Inventory audit (stocktake) schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from backoffice.models.inventory_audit import AuditStatus


class AuditCreate(BaseModel):
    audit_date: Optional[date] = None
    notes: Optional[str] = None


class AuditCountUpdate(BaseModel):
    """Physical count for one audit line."""

    physical_quantity: Decimal = Field(ge=0)
    variance_reason: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None


class AuditLineResponse(BaseModel):
    id: int
    audit_id: int
    inventory_item_id: int
    system_quantity: Decimal
    physical_quantity: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    variance_reason: Optional[str] = None
    notes: Optional[str] = None
    audited_by: Optional[int] = None
    counted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuditResponse(BaseModel):
    """Inventory audit response schema."""

    id: int
    audit_number: str
    audit_date: date
    status: AuditStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    conducted_by: Optional[int] = None
    notes: Optional[str] = None
    lines: List[AuditLineResponse] = []

    model_config = {"from_attributes": True}


class VarianceLine(BaseModel):
    line_id: int
    inventory_item_id: int
    item_name: str
    unit: str
    system_quantity: Decimal
    physical_quantity: Decimal
    variance: Decimal
    variance_value: Decimal
    variance_reason: Optional[str] = None


class VarianceSummary(BaseModel):
    total_items_audited: int
    items_with_variance: int
    variance_rate: float


class VarianceReport(BaseModel):
    """Counted lines that differ from the snapshot, with summary figures."""

    audit_id: int
    audit_number: str
    status: AuditStatus
    lines: List[VarianceLine]
    summary: VarianceSummary

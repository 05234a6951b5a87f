"""Stock transfer schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from backoffice.models.stock_transfer import TransferStatus


class StockTransferCreate(BaseModel):
    """Stock transfer creation schema."""

    inventory_item_id: int
    quantity: Decimal = Field(gt=0)
    to_location: str = Field(min_length=1, max_length=100)
    from_location: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class StockTransferResponse(BaseModel):
    """Stock transfer response schema."""

    id: int
    transfer_number: str
    inventory_item_id: int
    from_location: str
    to_location: str
    quantity_transferred: Decimal
    status: TransferStatus
    transfer_date: datetime
    received_date: Optional[datetime] = None
    requested_by: Optional[int] = None
    received_by: Optional[int] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}

"""Stock transfer model: a two-phase move of stock between locations."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base, TimestampMixin


class TransferStatus(str, Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    RECEIVED = "received"
    CANCELLED = "cancelled"


TERMINAL_TRANSFER_STATUSES = (TransferStatus.RECEIVED, TransferStatus.CANCELLED)
OPEN_TRANSFER_STATUSES = (TransferStatus.PENDING, TransferStatus.IN_TRANSIT)


class StockTransfer(Base, TimestampMixin):
    """Stock moved from one location tag to another.

    The source deduction is applied when the transfer is created. Cancelling
    restores exactly ``quantity_transferred``; receiving has no stock effect.
    """

    __tablename__ = "stock_transfers"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Filled in from the id right after insert.
    transfer_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True, index=True)
    inventory_item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    from_location: Mapped[str] = mapped_column(String(100), nullable=False)
    to_location: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_transferred: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    status: Mapped[TransferStatus] = mapped_column(
        SQLEnum(TransferStatus), default=TransferStatus.PENDING, nullable=False, index=True
    )
    transfer_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    requested_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    received_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    inventory_item: Mapped["InventoryItem"] = relationship("InventoryItem")


# Forward references
from backoffice.models.inventory_item import InventoryItem

"""Stock ledger model: the append-only record of every stock change."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base


class StockAction(str, Enum):
    """Why a ledger entry was written."""

    OPENING_BALANCE = "opening_balance"  # Stock the item was created with
    SALE = "sale"  # Bar sale on an order
    PURCHASE_RECEIVED = "purchase_received"  # Goods received against a PO line
    TRANSFER_INITIATED = "transfer_initiated"  # Deducted when a transfer is created
    TRANSFER_COMPLETED = "transfer_completed"  # Informational, zero delta
    TRANSFER_CANCELLED = "transfer_cancelled"  # Compensates the initial deduction
    WASTAGE = "wastage"  # Spoilage, breakage
    WASTAGE_REVERSAL = "wastage_reversal"
    RETURN_INCREMENT = "return_increment"  # Customer/product return back into stock
    RETURN_REVERSAL = "return_reversal"
    AUDIT_ADJUSTMENT = "audit_adjustment"  # Stocktake variance
    MANUAL_ADJUSTMENT = "manual_adjustment"  # Absolute correction outside a stocktake


class ReferenceType(str, Enum):
    """Higher-level entity that caused a ledger entry."""

    INVENTORY_ITEM = "inventory_item"
    ORDER = "order"
    PURCHASE_ORDER = "purchase_order"
    STOCK_TRANSFER = "stock_transfer"
    WASTAGE_LOG = "wastage_log"
    PRODUCT_RETURN = "product_return"
    INVENTORY_AUDIT = "inventory_audit"
    MANUAL = "manual"


class StockMutation(Base):
    """Ledger of all stock changes (single source of truth).

    Rows are immutable once written. A correction is a new row with the
    opposite-signed ``quantity_change``.
    """

    __tablename__ = "inventory_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    quantity_change: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    reference_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    logged_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    # Relationships
    item: Mapped["InventoryItem"] = relationship("InventoryItem")


# Forward references
from backoffice.models.inventory_item import InventoryItem

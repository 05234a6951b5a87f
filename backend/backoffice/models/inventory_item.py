"""Inventory item model: the stock catalog and its materialized stock level."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base, TimestampMixin


class InventoryType(str, Enum):
    """Which department stocks and consumes an item."""

    KITCHEN = "kitchen"
    BAR = "bar"
    HOUSEKEEPING = "housekeeping"
    MINIBAR = "minibar"


class InventoryItem(Base, TimestampMixin):
    """A stockable item.

    ``current_stock`` is a cache of the sum of the item's ledger entries and is
    only ever written by ``StockMutator``. Items are deactivated, never deleted,
    so ledger references stay valid.
    """

    __tablename__ = "inventory_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(20), default="unit", nullable=False)
    inventory_type: Mapped[InventoryType] = mapped_column(
        SQLEnum(InventoryType), default=InventoryType.BAR, nullable=False, index=True
    )
    current_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    minimum_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    cost_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    buying_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    supplier_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    supplier: Mapped[Optional["Supplier"]] = relationship("Supplier", back_populates="inventory_items")

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.minimum_stock


# Forward references
from backoffice.models.supplier import Supplier

"""Stocktake models: the audit header and one counted line per item."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base, TimestampMixin


class AuditStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InventoryAudit(Base, TimestampMixin):
    """A physical stocktake."""

    __tablename__ = "inventory_audits"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Filled in from the id right after insert.
    audit_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True, index=True)
    audit_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[AuditStatus] = mapped_column(
        SQLEnum(AuditStatus), default=AuditStatus.IN_PROGRESS, nullable=False, index=True
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    conducted_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    lines: Mapped[List["AuditLine"]] = relationship(
        "AuditLine", back_populates="audit", cascade="all, delete-orphan", order_by="AuditLine.id"
    )


class AuditLine(Base):
    """Counted quantity for one item.

    ``system_quantity`` is the stock snapshot taken when the audit started and
    is never recomputed afterwards.
    """

    __tablename__ = "inventory_audit_lines"
    __table_args__ = (
        UniqueConstraint("audit_id", "inventory_item_id", name="uq_audit_line_item"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    audit_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_audits.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inventory_item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    system_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    physical_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    variance_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audited_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    counted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    audit: Mapped["InventoryAudit"] = relationship("InventoryAudit", back_populates="lines")
    inventory_item: Mapped["InventoryItem"] = relationship("InventoryItem")

    @property
    def variance(self) -> Optional[Decimal]:
        if self.physical_quantity is None:
            return None
        return self.physical_quantity - self.system_quantity


# Forward references
from backoffice.models.inventory_item import InventoryItem

"""Audit Reconciler - physical stocktakes.

``start_audit`` snapshots each active item's stock into ``system_quantity``.
Counting fills in ``physical_quantity`` and never touches stock. Completion
makes the physical count authoritative: stock is set to the counted quantity
and the change is booked as one ``audit_adjustment`` entry per item.

The snapshot is frozen, but sales keep running while people count. The ledger
entry written at completion is therefore ``physical - stock at completion``,
which equals ``physical - system`` when nothing moved in between and keeps the
ledger summing to the stock level when something did.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.db.unit_of_work import lock_row, unit_of_work
from backoffice.models.inventory_audit import AuditLine, AuditStatus, InventoryAudit
from backoffice.models.inventory_item import InventoryItem
from backoffice.models.stock_mutation import ReferenceType, StockAction
from backoffice.services.inventory_service import InventoryService
from backoffice.services.numbering import assign_document_number
from backoffice.services.stock_mutator import as_quantity

logger = logging.getLogger(__name__)


class StocktakeService:

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    def get_audit(self, audit_id: int) -> InventoryAudit:
        audit = self.db.get(InventoryAudit, audit_id)
        if audit is None:
            raise NotFoundError("Inventory audit", audit_id)
        return audit

    def list_audits(
        self, status: Optional[AuditStatus] = None, skip: int = 0, limit: int = 50
    ) -> Tuple[List[InventoryAudit], int]:
        query = self.db.query(InventoryAudit)
        if status is not None:
            query = query.filter(InventoryAudit.status == AuditStatus(status))
        total = query.count()
        audits = query.order_by(InventoryAudit.id.desc()).offset(skip).limit(limit).all()
        return audits, total

    def start_audit(
        self,
        audit_date: Optional[date] = None,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> InventoryAudit:
        """Open a stocktake with one line per active item."""
        with unit_of_work(self.db):
            audit = InventoryAudit(
                audit_date=audit_date or date.today(),
                status=AuditStatus.IN_PROGRESS,
                start_time=datetime.now(timezone.utc),
                conducted_by=actor_id,
                notes=notes,
            )
            items = (
                self.db.query(InventoryItem)
                .filter(InventoryItem.is_active.is_(True))
                .order_by(InventoryItem.id)
                .populate_existing()
                .all()
            )
            for item in items:
                audit.lines.append(
                    AuditLine(
                        inventory_item_id=item.id,
                        system_quantity=as_quantity(item.current_stock),
                    )
                )
            self.db.add(audit)
            assign_document_number(self.db, audit, "audit_number", "AUDIT")

        self.db.refresh(audit)
        logger.info("Started audit %s with %s line(s)", audit.audit_number, len(audit.lines))
        return audit

    def record_count(
        self,
        line_id: int,
        physical_quantity,
        actor_id: Optional[int] = None,
        variance_reason: Optional[str] = None,
        notes: Optional[str] = None,
        audit_id: Optional[int] = None,
    ) -> AuditLine:
        """Set the counted quantity on a line. Last write wins.

        When ``audit_id`` is given the line must belong to that audit.
        """
        physical_quantity = as_quantity(physical_quantity)
        if physical_quantity < 0:
            raise ValidationError("Physical count cannot be negative")

        with unit_of_work(self.db):
            line = self.db.get(AuditLine, line_id)
            if line is None or (audit_id is not None and line.audit_id != audit_id):
                raise NotFoundError("Audit line", line_id)
            # Serializes behind a concurrent completion or cancellation.
            audit = lock_row(self.db, InventoryAudit, line.audit_id)
            if audit.status != AuditStatus.IN_PROGRESS:
                raise InvalidStateError(
                    f"Audit {audit.audit_number} is {audit.status.value}", current_status=audit.status.value
                )
            line.physical_quantity = physical_quantity
            line.audited_by = actor_id
            line.counted_at = datetime.now(timezone.utc)
            if variance_reason is not None:
                line.variance_reason = variance_reason
            if notes is not None:
                line.notes = notes

        self.db.refresh(line)
        return line

    def _close(self, audit_id: int, target: AuditStatus) -> InventoryAudit:
        """Move an in-progress audit to ``target``; the UPDATE is the idempotence guard."""
        audit = self.get_audit(audit_id)
        result = self.db.execute(
            update(InventoryAudit)
            .where(InventoryAudit.id == audit_id, InventoryAudit.status == AuditStatus.IN_PROGRESS)
            .values(status=target, end_time=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(audit)
        if result.rowcount == 0:
            raise InvalidStateError(
                f"Audit {audit.audit_number} is {audit.status.value}", current_status=audit.status.value
            )
        return audit

    def complete_audit(self, audit_id: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
        """Close the audit and make counted quantities the stock level.

        Lines without a count are left alone. Returns the variance report.
        """
        with unit_of_work(self.db):
            audit = self._close(audit_id, AuditStatus.COMPLETED)
            lines = (
                self.db.query(AuditLine)
                .filter(AuditLine.audit_id == audit_id)
                .order_by(AuditLine.id)
                .populate_existing()
                .all()
            )
            adjusted = 0
            for line in lines:
                if line.physical_quantity is None or line.physical_quantity == line.system_quantity:
                    continue
                _, entry = self.inventory.set_stock(
                    line.inventory_item_id,
                    line.physical_quantity,
                    actor_id=actor_id,
                    notes=f"{audit.audit_number}: counted {line.physical_quantity}, system {line.system_quantity}",
                    action=StockAction.AUDIT_ADJUSTMENT,
                    reference_type=ReferenceType.INVENTORY_AUDIT,
                    reference_id=audit.id,
                    allow_inactive=True,
                )
                if entry is not None:
                    adjusted += 1

        report = self.variance_report(audit_id)
        logger.info(
            "Completed audit %s: %s variance line(s), %s stock adjustment(s)",
            audit.audit_number, report["summary"]["items_with_variance"], adjusted,
        )
        return report

    def cancel_audit(self, audit_id: int, actor_id: Optional[int] = None) -> InventoryAudit:
        with unit_of_work(self.db):
            audit = self._close(audit_id, AuditStatus.CANCELLED)
        self.db.refresh(audit)
        logger.info("Cancelled audit %s by %s", audit.audit_number, actor_id)
        return audit

    def variance_report(self, audit_id: int) -> Dict[str, Any]:
        """Counted lines whose physical quantity differs from the snapshot."""
        audit = self.get_audit(audit_id)
        counted = [line for line in audit.lines if line.physical_quantity is not None]
        variances = []
        for line in counted:
            variance = line.variance
            if variance == 0:
                continue
            item = line.inventory_item
            cost = Decimal(str(item.cost_per_unit or 0))
            variances.append({
                "line_id": line.id,
                "inventory_item_id": line.inventory_item_id,
                "item_name": item.name,
                "unit": item.unit,
                "system_quantity": line.system_quantity,
                "physical_quantity": line.physical_quantity,
                "variance": variance,
                "variance_value": (variance * cost).quantize(Decimal("0.01")),
                "variance_reason": line.variance_reason,
            })

        total_audited = len(counted)
        variance_rate = round(len(variances) / total_audited * 100, 2) if total_audited else 0.0
        return {
            "audit_id": audit.id,
            "audit_number": audit.audit_number,
            "status": audit.status,
            "lines": variances,
            "summary": {
                "total_items_audited": total_audited,
                "items_with_variance": len(variances),
                "variance_rate": variance_rate,
            },
        }

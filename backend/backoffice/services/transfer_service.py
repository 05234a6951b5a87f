"""Transfer Coordinator - two-phase stock moves between locations.

    create  -> deduct quantity now, status pending
    dispatch: pending -> in_transit          (no stock effect)
    receive : pending|in_transit -> received (zero-delta ledger entry)
    cancel  : pending|in_transit -> cancelled (+quantity, exactly once)

``received`` and ``cancelled`` are terminal. Every transition is a conditional
UPDATE on the current status, so of two racing receive/cancel calls only one
matches a row and the other sees an ``InvalidStateError``.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.stock_mutation import ReferenceType, StockAction
from backoffice.models.stock_transfer import OPEN_TRANSFER_STATUSES, StockTransfer, TransferStatus
from backoffice.services.inventory_service import InventoryService
from backoffice.services.ledger import LedgerRecorder
from backoffice.services.numbering import assign_document_number
from backoffice.services.stock_mutator import as_quantity

logger = logging.getLogger(__name__)


class TransferService:

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)
        self.ledger = LedgerRecorder(db)

    def get_transfer(self, transfer_id: int) -> StockTransfer:
        transfer = self.db.get(StockTransfer, transfer_id)
        if transfer is None:
            raise NotFoundError("Stock transfer", transfer_id)
        return transfer

    def list_transfers(
        self,
        status: Optional[TransferStatus] = None,
        item_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[StockTransfer], int]:
        query = self.db.query(StockTransfer)
        if status is not None:
            query = query.filter(StockTransfer.status == TransferStatus(status))
        if item_id is not None:
            query = query.filter(StockTransfer.inventory_item_id == item_id)
        total = query.count()
        transfers = query.order_by(StockTransfer.id.desc()).offset(skip).limit(limit).all()
        return transfers, total

    def create_transfer(
        self,
        item_id: int,
        quantity,
        to_location: str,
        from_location: Optional[str] = None,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> StockTransfer:
        """Create a transfer and deduct its quantity from stock immediately."""
        quantity = as_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Transfer quantity must be positive")
        from_location = (from_location or settings.default_location).strip()
        to_location = (to_location or "").strip()
        if not to_location:
            raise ValidationError("Destination location is required")
        if from_location == to_location:
            raise ValidationError("Source and destination locations must differ")

        with unit_of_work(self.db):
            item = self.inventory.get_item(item_id)
            transfer = StockTransfer(
                inventory_item_id=item.id,
                from_location=from_location,
                to_location=to_location,
                quantity_transferred=quantity,
                status=TransferStatus.PENDING,
                transfer_date=datetime.now(timezone.utc),
                requested_by=actor_id,
                notes=notes,
            )
            self.db.add(transfer)
            assign_document_number(self.db, transfer, "transfer_number", "ST")

            self.inventory.adjust_stock(
                item.id,
                -quantity,
                StockAction.TRANSFER_INITIATED,
                reference_type=ReferenceType.STOCK_TRANSFER,
                reference_id=transfer.id,
                actor_id=actor_id,
                notes=f"{transfer.transfer_number}: {from_location} -> {to_location}",
            )

        self.db.refresh(transfer)
        logger.info(
            "Created transfer %s: %s of item %s from %s to %s",
            transfer.transfer_number, quantity, item_id, from_location, to_location,
        )
        return transfer

    def _transition(
        self,
        transfer_id: int,
        allowed_from: Sequence[TransferStatus],
        target: TransferStatus,
        **values,
    ) -> StockTransfer:
        """Move a transfer to ``target`` only if it is still in ``allowed_from``."""
        transfer = self.get_transfer(transfer_id)
        result = self.db.execute(
            update(StockTransfer)
            .where(StockTransfer.id == transfer_id, StockTransfer.status.in_(allowed_from))
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(transfer)
        if result.rowcount == 0:
            logger.warning(
                "Rejected transfer %s move to %s from %s",
                transfer.transfer_number, target.value, transfer.status.value,
            )
            raise InvalidStateError(
                f"Transfer {transfer.transfer_number} is {transfer.status.value}, cannot move to {target.value}",
                current_status=transfer.status.value,
            )
        return transfer

    def dispatch_transfer(self, transfer_id: int, actor_id: Optional[int] = None) -> StockTransfer:
        with unit_of_work(self.db):
            transfer = self._transition(transfer_id, (TransferStatus.PENDING,), TransferStatus.IN_TRANSIT)
        logger.info("Transfer %s dispatched by %s", transfer.transfer_number, actor_id)
        self.db.refresh(transfer)
        return transfer

    def receive_transfer(self, transfer_id: int, actor_id: Optional[int] = None) -> StockTransfer:
        """Confirm arrival. The stock left at creation, so the entry is zero-delta."""
        with unit_of_work(self.db):
            transfer = self._transition(
                transfer_id,
                OPEN_TRANSFER_STATUSES,
                TransferStatus.RECEIVED,
                received_by=actor_id,
                received_date=datetime.now(timezone.utc),
            )
            self.ledger.record(
                transfer.inventory_item_id,
                StockAction.TRANSFER_COMPLETED,
                0,
                reference_type=ReferenceType.STOCK_TRANSFER,
                reference_id=transfer.id,
                actor_id=actor_id,
                notes=f"{transfer.transfer_number} received at {transfer.to_location}",
            )
        self.db.refresh(transfer)
        logger.info("Transfer %s received by %s", transfer.transfer_number, actor_id)
        return transfer

    def cancel_transfer(self, transfer_id: int, actor_id: Optional[int] = None) -> StockTransfer:
        """Cancel an open transfer and put its quantity back, exactly once."""
        with unit_of_work(self.db):
            transfer = self._transition(transfer_id, OPEN_TRANSFER_STATUSES, TransferStatus.CANCELLED)
            self.inventory.adjust_stock(
                transfer.inventory_item_id,
                transfer.quantity_transferred,
                StockAction.TRANSFER_CANCELLED,
                reference_type=ReferenceType.STOCK_TRANSFER,
                reference_id=transfer.id,
                actor_id=actor_id,
                notes=f"{transfer.transfer_number} cancelled",
                allow_inactive=True,
            )
        self.db.refresh(transfer)
        logger.info(
            "Transfer %s cancelled by %s, %s restored",
            transfer.transfer_number, actor_id, transfer.quantity_transferred,
        )
        return transfer

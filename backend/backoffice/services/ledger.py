"""Ledger Recorder - append-only writer and reader for ``inventory_log``.

There is no update or delete here. Corrections are new entries
with the opposite-signed quantity.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.models.stock_mutation import StockAction, StockMutation
from backoffice.services.stock_mutator import as_quantity

logger = logging.getLogger(__name__)


class LedgerRecorder:
    """Append stock mutation records inside the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        item_id: int,
        action: StockAction,
        quantity_change,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> StockMutation:
        entry = StockMutation(
            item_id=item_id,
            action=StockAction(action).value,
            quantity_change=as_quantity(quantity_change),
            reference_type=reference_type.value if hasattr(reference_type, "value") else reference_type,
            reference_id=reference_id,
            logged_by=actor_id,
            notes=notes[:500] if notes else notes,
        )
        self.db.add(entry)
        self.db.flush()
        logger.info(
            "Ledger %s: item=%s action=%s change=%s ref=%s:%s by=%s",
            entry.id, item_id, entry.action, entry.quantity_change,
            entry.reference_type, reference_id, actor_id,
        )
        return entry

    def history(
        self,
        item_id: Optional[int] = None,
        action: Optional[StockAction] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[StockMutation], int]:
        """Return a newest-first page of entries and the total match count."""
        query = self.db.query(StockMutation)
        if item_id is not None:
            query = query.filter(StockMutation.item_id == item_id)
        if action is not None:
            query = query.filter(StockMutation.action == StockAction(action).value)
        if reference_type is not None:
            ref = reference_type.value if hasattr(reference_type, "value") else reference_type
            query = query.filter(StockMutation.reference_type == ref)
        if reference_id is not None:
            query = query.filter(StockMutation.reference_id == reference_id)

        total = query.count()
        entries = (
            query.order_by(StockMutation.created_at.desc(), StockMutation.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return entries, total

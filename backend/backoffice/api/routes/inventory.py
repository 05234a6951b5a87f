"""Inventory item routes: catalog, stock adjustments and the ledger."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireAdmin, RequireManager, RequireStaff
from backoffice.core.responses import list_response, paginated_response
from backoffice.db.session import DbSession
from backoffice.models.inventory_item import InventoryType
from backoffice.models.stock_mutation import StockAction
from backoffice.schemas.inventory import (
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    LedgerEntryResponse,
    StockAdjustment,
    StockAdjustmentResponse,
    StockCheckResponse,
    StockCount,
)
from backoffice.services.inventory_service import InventoryService
from backoffice.services.stock_projection import StockProjection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_items(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    inventory_type: Optional[InventoryType] = None,
    low_stock: bool = False,
    search: Optional[str] = Query(None, max_length=100),
    include_inactive: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """List inventory items."""
    items, total = InventoryService(db).list_items(
        inventory_type=inventory_type,
        low_stock=low_stock,
        search=search,
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )
    return paginated_response(
        [InventoryItemResponse.model_validate(item) for item in items], total, skip, limit
    )


@router.get("/low-stock")
@limiter.limit("60/minute")
def low_stock(request: Request, db: DbSession, current_user: RequireStaff):
    """Active items at or below their minimum stock."""
    items = InventoryService(db).low_stock_items()
    return list_response([InventoryItemResponse.model_validate(item) for item in items])


@router.get("/ledger")
@limiter.limit("60/minute")
def ledger(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    action: Optional[StockAction] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """Ledger entries across all items, newest first."""
    entries, total = InventoryService(db).history(
        action=action, reference_type=reference_type, reference_id=reference_id, skip=skip, limit=limit
    )
    return paginated_response(
        [LedgerEntryResponse.model_validate(entry) for entry in entries], total, skip, limit
    )


@router.get("/drift")
@limiter.limit("10/minute")
def stock_drift(request: Request, db: DbSession, current_user: RequireManager):
    """Items whose stock level disagrees with their ledger."""
    return list_response([StockCheckResponse(**row) for row in StockProjection(db).find_drift()])


@router.post("/", response_model=InventoryItemResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_item(request: Request, data: InventoryItemCreate, db: DbSession, current_user: RequireManager):
    """Create an inventory item with an optional opening balance."""
    return InventoryService(db).create_item(actor_id=current_user.user_id, **data.model_dump())


@router.get("/{item_id}", response_model=InventoryItemResponse)
@limiter.limit("60/minute")
def get_item(request: Request, item_id: int, db: DbSession, current_user: RequireStaff):
    return InventoryService(db).get_item(item_id)


@router.put("/{item_id}", response_model=InventoryItemResponse)
@limiter.limit("30/minute")
def update_item(
    request: Request, item_id: int, data: InventoryItemUpdate, db: DbSession, current_user: RequireManager
):
    """Update descriptive fields. Stock is not editable here."""
    return InventoryService(db).update_item(item_id, **data.model_dump(exclude_unset=True))


@router.delete("/{item_id}", response_model=InventoryItemResponse)
@limiter.limit("30/minute")
def deactivate_item(request: Request, item_id: int, db: DbSession, current_user: RequireManager):
    """Deactivate an item. Items with ledger history are never deleted."""
    return InventoryService(db).deactivate_item(item_id)


@router.post("/{item_id}/adjust", response_model=StockAdjustmentResponse)
@limiter.limit("30/minute")
def adjust_stock(
    request: Request, item_id: int, data: StockAdjustment, db: DbSession, current_user: RequireManager
):
    """Apply a signed stock change and record it in the ledger."""
    item, entry = InventoryService(db).adjust_stock(
        item_id,
        data.delta,
        data.action,
        reference_type=data.reference_type,
        reference_id=data.reference_id,
        actor_id=current_user.user_id,
        notes=data.notes,
    )
    return {"item": item, "ledger_entry": entry}


@router.post("/{item_id}/count", response_model=StockAdjustmentResponse)
@limiter.limit("30/minute")
def set_stock(request: Request, item_id: int, data: StockCount, db: DbSession, current_user: RequireManager):
    """Set stock to a counted quantity outside of a stocktake."""
    item, entry = InventoryService(db).set_stock(
        item_id, data.counted_quantity, actor_id=current_user.user_id, notes=data.notes
    )
    return {"item": item, "ledger_entry": entry}


@router.get("/{item_id}/ledger")
@limiter.limit("60/minute")
def item_ledger(
    request: Request,
    item_id: int,
    db: DbSession,
    current_user: RequireStaff,
    action: Optional[StockAction] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """Ledger history for one item, newest first."""
    entries, total = InventoryService(db).history(item_id, action=action, skip=skip, limit=limit)
    return paginated_response(
        [LedgerEntryResponse.model_validate(entry) for entry in entries], total, skip, limit
    )


@router.get("/{item_id}/stock-check", response_model=StockCheckResponse)
@limiter.limit("30/minute")
def stock_check(request: Request, item_id: int, db: DbSession, current_user: RequireManager):
    """Compare the item's stock level with the sum of its ledger."""
    return StockProjection(db).check_item(item_id)


@router.post("/{item_id}/rebuild")
@limiter.limit("10/minute")
def rebuild_stock(request: Request, item_id: int, db: DbSession, current_user: RequireAdmin):
    """Reset the item's stock level to its ledger sum."""
    result = StockProjection(db).rebuild_item(item_id)
    logger.info("Stock rebuild for item %s requested by %s: %s", item_id, current_user.user_id, result)
    return result

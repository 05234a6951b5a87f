"""Wastage routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireManager, RequireStaff
from backoffice.core.responses import paginated_response
from backoffice.db.session import DbSession
from backoffice.schemas.inventory import LedgerEntryResponse
from backoffice.schemas.wastage import WastageCreate, WastageResponse, WastageSummary
from backoffice.services.wastage_service import WastageService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_wastage(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    item_id: Optional[int] = None,
    include_reversed: bool = True,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    logs, total = WastageService(db).list_wastage(
        item_id=item_id, include_reversed=include_reversed, skip=skip, limit=limit
    )
    return paginated_response([WastageResponse.model_validate(log) for log in logs], total, skip, limit)


@router.get("/summary", response_model=WastageSummary)
@limiter.limit("30/minute")
def wastage_summary(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """Unreversed wastage totals grouped by reason."""
    return WastageService(db).wastage_summary(start=start, end=end)


@router.post("/", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def record_wastage(request: Request, data: WastageCreate, db: DbSession, current_user: RequireStaff):
    """Write off wasted stock."""
    return WastageService(db).record_wastage(
        data.inventory_item_id,
        data.quantity,
        data.reason,
        actor_id=current_user.user_id,
        notes=data.notes,
        waste_date=data.waste_date,
    )


@router.post("/{wastage_id}/reverse", response_model=LedgerEntryResponse)
@limiter.limit("30/minute")
def reverse_wastage(request: Request, wastage_id: int, db: DbSession, current_user: RequireManager):
    """Credit a wastage record back to stock."""
    return WastageService(db).reverse_wastage(wastage_id, actor_id=current_user.user_id)

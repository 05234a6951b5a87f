"""Product return routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireManager, RequireStaff
from backoffice.core.responses import paginated_response
from backoffice.db.session import DbSession
from backoffice.schemas.inventory import LedgerEntryResponse
from backoffice.schemas.wastage import ProductReturnCreate, ProductReturnResponse, ReturnSummary
from backoffice.services.return_service import ReturnService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_returns(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    item_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    returns, total = ReturnService(db).list_returns(item_id=item_id, skip=skip, limit=limit)
    return paginated_response(
        [ProductReturnResponse.model_validate(r) for r in returns], total, skip, limit
    )


@router.get("/summary", response_model=ReturnSummary)
@limiter.limit("30/minute")
def return_summary(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """Unreversed return totals grouped by reason."""
    return ReturnService(db).return_summary(start=start, end=end)


@router.post("/", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def record_return(request: Request, data: ProductReturnCreate, db: DbSession, current_user: RequireStaff):
    """Put returned goods back into stock."""
    return ReturnService(db).record_return(
        data.inventory_item_id,
        data.quantity,
        actor_id=current_user.user_id,
        order_id=data.order_id,
        reason=data.reason,
        refund_amount=data.refund_amount,
        notes=data.notes,
    )


@router.post("/{return_id}/reverse", response_model=LedgerEntryResponse)
@limiter.limit("30/minute")
def reverse_return(request: Request, return_id: int, db: DbSession, current_user: RequireManager):
    """Undo a recorded return, taking its quantity back out of stock."""
    return ReturnService(db).reverse_return(return_id, actor_id=current_user.user_id)

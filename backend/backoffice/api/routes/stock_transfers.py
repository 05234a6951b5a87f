"""Stock transfer routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireManager, RequireStaff
from backoffice.core.responses import paginated_response
from backoffice.db.session import DbSession
from backoffice.models.stock_transfer import TransferStatus
from backoffice.schemas.transfer import StockTransferCreate, StockTransferResponse
from backoffice.services.transfer_service import TransferService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_transfers(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    status_filter: Optional[TransferStatus] = Query(None, alias="status"),
    item_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    transfers, total = TransferService(db).list_transfers(
        status=status_filter, item_id=item_id, skip=skip, limit=limit
    )
    return paginated_response(
        [StockTransferResponse.model_validate(t) for t in transfers], total, skip, limit
    )


@router.post("/", response_model=StockTransferResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_transfer(request: Request, data: StockTransferCreate, db: DbSession, current_user: RequireManager):
    """Create a transfer. Stock leaves the source location immediately."""
    return TransferService(db).create_transfer(
        data.inventory_item_id,
        data.quantity,
        to_location=data.to_location,
        from_location=data.from_location,
        actor_id=current_user.user_id,
        notes=data.notes,
    )


@router.get("/{transfer_id}", response_model=StockTransferResponse)
@limiter.limit("60/minute")
def get_transfer(request: Request, transfer_id: int, db: DbSession, current_user: RequireStaff):
    return TransferService(db).get_transfer(transfer_id)


@router.post("/{transfer_id}/dispatch", response_model=StockTransferResponse)
@limiter.limit("30/minute")
def dispatch_transfer(request: Request, transfer_id: int, db: DbSession, current_user: RequireStaff):
    return TransferService(db).dispatch_transfer(transfer_id, actor_id=current_user.user_id)


@router.post("/{transfer_id}/receive", response_model=StockTransferResponse)
@limiter.limit("30/minute")
def receive_transfer(request: Request, transfer_id: int, db: DbSession, current_user: RequireStaff):
    return TransferService(db).receive_transfer(transfer_id, actor_id=current_user.user_id)


@router.post("/{transfer_id}/cancel", response_model=StockTransferResponse)
@limiter.limit("30/minute")
def cancel_transfer(request: Request, transfer_id: int, db: DbSession, current_user: RequireManager):
    """Cancel an open transfer and restore its quantity."""
    return TransferService(db).cancel_transfer(transfer_id, actor_id=current_user.user_id)

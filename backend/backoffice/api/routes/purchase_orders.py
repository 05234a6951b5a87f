"""Purchase order routes: create, receive, cancel."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireManager, RequireStaff
from backoffice.core.responses import paginated_response
from backoffice.db.session import DbSession
from backoffice.models.purchase_order import PurchaseOrderStatus
from backoffice.schemas.purchase_order import (
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    ReceiveRequest,
    ReceiveResponse,
)
from backoffice.services.receiving_service import ReceivingService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_purchase_orders(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    status_filter: Optional[PurchaseOrderStatus] = Query(None, alias="status"),
    supplier_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """List purchase orders, newest first."""
    orders, total = ReceivingService(db).list_purchase_orders(
        status=status_filter, supplier_id=supplier_id, skip=skip, limit=limit
    )
    return paginated_response(
        [PurchaseOrderResponse.model_validate(po) for po in orders], total, skip, limit
    )


@router.post("/", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_purchase_order(
    request: Request, data: PurchaseOrderCreate, db: DbSession, current_user: RequireManager
):
    """Create a pending purchase order."""
    return ReceivingService(db).create_purchase_order(
        supplier_id=data.supplier_id,
        lines=[line.model_dump() for line in data.lines],
        order_date=data.order_date,
        expected_delivery_date=data.expected_delivery_date,
        notes=data.notes,
        actor_id=current_user.user_id,
    )


@router.get("/{order_id}", response_model=PurchaseOrderResponse)
@limiter.limit("60/minute")
def get_purchase_order(request: Request, order_id: int, db: DbSession, current_user: RequireStaff):
    return ReceivingService(db).get_purchase_order(order_id)


@router.post("/{order_id}/receive", response_model=ReceiveResponse)
@limiter.limit("30/minute")
def receive_purchase_order(
    request: Request, order_id: int, data: ReceiveRequest, db: DbSession, current_user: RequireStaff
):
    """Receive goods. Quantities are cumulative per line, so replays are safe."""
    return ReceivingService(db).receive(
        order_id,
        [receipt.model_dump() for receipt in data.lines],
        actor_id=current_user.user_id,
    )


@router.post("/{order_id}/cancel", response_model=PurchaseOrderResponse)
@limiter.limit("30/minute")
def cancel_purchase_order(request: Request, order_id: int, db: DbSession, current_user: RequireManager):
    return ReceivingService(db).cancel_purchase_order(order_id, actor_id=current_user.user_id)

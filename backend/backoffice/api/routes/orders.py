"""Order routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireStaff
from backoffice.core.responses import paginated_response
from backoffice.db.session import DbSession
from backoffice.models.order import OrderStatus
from backoffice.schemas.order import OrderCreate, OrderResponse
from backoffice.services.order_service import OrderService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_orders(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    orders, total = OrderService(db).list_orders(status=status_filter, skip=skip, limit=limit)
    return paginated_response([OrderResponse.model_validate(o) for o in orders], total, skip, limit)


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("60/minute")
def create_order(request: Request, data: OrderCreate, db: DbSession, current_user: RequireStaff):
    """Create an order. Bar items are deducted from stock in the same transaction."""
    return OrderService(db).create_order(
        [line.model_dump() for line in data.lines],
        order_type=data.order_type,
        payment_method=data.payment_method,
        customer_name=data.customer_name,
        table_number=data.table_number,
        notes=data.notes,
        actor_id=current_user.user_id,
    )


@router.get("/{order_id}", response_model=OrderResponse)
@limiter.limit("60/minute")
def get_order(request: Request, order_id: int, db: DbSession, current_user: RequireStaff):
    return OrderService(db).get_order(order_id)

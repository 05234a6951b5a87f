"""Inventory audit (stocktake) routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireManager, RequireStaff
from backoffice.core.responses import paginated_response
from backoffice.db.session import DbSession
from backoffice.models.inventory_audit import AuditStatus
from backoffice.schemas.audit import (
    AuditCountUpdate,
    AuditCreate,
    AuditLineResponse,
    AuditResponse,
    VarianceReport,
)
from backoffice.services.stocktake_service import StocktakeService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_audits(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    status_filter: Optional[AuditStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    audits, total = StocktakeService(db).list_audits(status=status_filter, skip=skip, limit=limit)
    return paginated_response([AuditResponse.model_validate(a) for a in audits], total, skip, limit)


@router.post("/", response_model=AuditResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def start_audit(request: Request, data: AuditCreate, db: DbSession, current_user: RequireManager):
    """Start a stocktake, snapshotting every active item's stock."""
    return StocktakeService(db).start_audit(
        audit_date=data.audit_date, actor_id=current_user.user_id, notes=data.notes
    )


@router.get("/{audit_id}", response_model=AuditResponse)
@limiter.limit("60/minute")
def get_audit(request: Request, audit_id: int, db: DbSession, current_user: RequireStaff):
    return StocktakeService(db).get_audit(audit_id)


@router.put("/{audit_id}/lines/{line_id}", response_model=AuditLineResponse)
@limiter.limit("120/minute")
def record_count(
    request: Request,
    audit_id: int,
    line_id: int,
    data: AuditCountUpdate,
    db: DbSession,
    current_user: RequireStaff,
):
    """Record the physical count for one line."""
    return StocktakeService(db).record_count(
        line_id,
        data.physical_quantity,
        actor_id=current_user.user_id,
        variance_reason=data.variance_reason,
        notes=data.notes,
        audit_id=audit_id,
    )


@router.get("/{audit_id}/variance", response_model=VarianceReport)
@limiter.limit("30/minute")
def variance_report(request: Request, audit_id: int, db: DbSession, current_user: RequireStaff):
    return StocktakeService(db).variance_report(audit_id)


@router.post("/{audit_id}/complete", response_model=VarianceReport)
@limiter.limit("10/minute")
def complete_audit(request: Request, audit_id: int, db: DbSession, current_user: RequireManager):
    """Complete the audit and apply counted quantities to stock."""
    return StocktakeService(db).complete_audit(audit_id, actor_id=current_user.user_id)


@router.post("/{audit_id}/cancel", response_model=AuditResponse)
@limiter.limit("10/minute")
def cancel_audit(request: Request, audit_id: int, db: DbSession, current_user: RequireManager):
    return StocktakeService(db).cancel_audit(audit_id, actor_id=current_user.user_id)

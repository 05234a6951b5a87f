"""Supplier routes."""

from fastapi import APIRouter, Request, status

from backoffice.core.rate_limit import limiter
from backoffice.core.rbac import RequireManager, RequireStaff
from backoffice.db.session import DbSession
from backoffice.schemas.supplier import SupplierCreate, SupplierResponse
from backoffice.services.supplier_service import SupplierService

router = APIRouter()


@router.get("/", response_model=list[SupplierResponse])
@limiter.limit("60/minute")
def list_suppliers(request: Request, db: DbSession, current_user: RequireStaff, include_inactive: bool = False):
    """List suppliers."""
    return SupplierService(db).list_suppliers(include_inactive=include_inactive)


@router.post("/", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_supplier(request: Request, data: SupplierCreate, db: DbSession, current_user: RequireManager):
    """Create a supplier."""
    return SupplierService(db).create_supplier(**data.model_dump())


@router.get("/{supplier_id}", response_model=SupplierResponse)
@limiter.limit("60/minute")
def get_supplier(request: Request, supplier_id: int, db: DbSession, current_user: RequireStaff):
    return SupplierService(db).get_supplier(supplier_id)

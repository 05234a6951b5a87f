"""Supplier directory."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.supplier import Supplier

logger = logging.getLogger(__name__)


class SupplierService:

    def __init__(self, db: Session):
        self.db = db

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    def create_supplier(
        self,
        name: str,
        contact_person: Optional[str] = None,
        contact_phone: Optional[str] = None,
        contact_email: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Supplier:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Supplier name is required")

        with unit_of_work(self.db):
            if self.db.query(Supplier).filter(Supplier.name == name).first() is not None:
                raise ValidationError(f"Supplier '{name}' already exists")
            supplier = Supplier(
                name=name,
                contact_person=contact_person,
                contact_phone=contact_phone,
                contact_email=contact_email,
                address=address,
                is_active=True,
            )
            self.db.add(supplier)
        self.db.refresh(supplier)
        logger.info("Created supplier %s (%s)", supplier.id, name)
        return supplier

    def list_suppliers(self, include_inactive: bool = False) -> List[Supplier]:
        query = self.db.query(Supplier)
        if not include_inactive:
            query = query.filter(Supplier.is_active.is_(True))
        return query.order_by(Supplier.name).all()

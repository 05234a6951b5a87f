"""Domain errors raised by the stock ledger services.

Each error carries the HTTP status the API layer should answer with, so the
routers never have to translate them one by one.
"""

from decimal import Decimal
from typing import Optional


class StockLedgerError(Exception):
    """Base exception for inventory ledger operations."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(StockLedgerError):
    """Raised when an item, order, transfer, audit or log id is unknown."""

    status_code = 404

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateError(StockLedgerError):
    """Raised when an operation is attempted from the wrong lifecycle state."""

    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message)


class InsufficientStockError(StockLedgerError):
    """Raised when a decrement would take current stock below zero."""

    status_code = 400

    def __init__(
        self,
        item_id: int,
        available: Decimal,
        requested: Decimal,
        item_name: Optional[str] = None,
        unit: Optional[str] = None,
    ):
        self.item_id = item_id
        self.item_name = item_name
        self.available = available
        self.requested = requested
        self.unit = unit
        label = f"'{item_name}'" if item_name else f"item {item_id}"
        unit_suffix = f" {unit}" if unit else ""
        super().__init__(
            f"Insufficient stock for {label}: "
            f"need {requested}{unit_suffix}, have {available}{unit_suffix}"
        )


class ValidationError(StockLedgerError):
    """Raised for malformed quantities such as negative counts."""

    status_code = 422

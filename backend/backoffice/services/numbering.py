"""Human-readable document numbers (PO1001, ST1001, AUDIT1001)."""

from sqlalchemy.orm import Session

NUMBER_BASE = 1000


def assign_document_number(db: Session, document, field: str, prefix: str) -> str:
    """Number a pending document from its own primary key.

    The row is flushed first so the id exists; two documents created at the
    same time can never compute the same number.
    """
    if document.id is None:
        db.flush()
    number = f"{prefix}{NUMBER_BASE + document.id}"
    setattr(document, field, number)
    db.flush()
    return number

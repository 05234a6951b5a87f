"""Transaction boundary shared by every stock-mutating operation.

The stock mutator, the ledger recorder and the dependent rows an operation
writes (order lines, receipts, audit lines) all join the same unit of work, so
either every write commits or none does.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import update
from sqlalchemy.orm import Session

_DEPTH_KEY = "unit_of_work_depth"


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run the enclosed block as one atomic transaction.

    Nested use joins the outer transaction: only the outermost level commits,
    and any exception escaping an inner level rolls back the whole thing once
    it reaches the outermost level.
    """
    depth = db.info.get(_DEPTH_KEY, 0)
    db.info[_DEPTH_KEY] = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except Exception:
        if depth == 0:
            db.rollback()
        raise
    finally:
        db.info[_DEPTH_KEY] = depth


def lock_row(db: Session, model, row_id: int):
    """Lock one row for the rest of the current transaction and load it fresh.

    A no-op UPDATE comes first: on PostgreSQL it takes the row lock, and on
    SQLite (no ``SELECT ... FOR UPDATE``) it takes the database write lock, so
    concurrent callers queue here instead of reading state that is about to
    change. Returns ``None`` for an unknown id.
    """
    # Assign columns to themselves so onupdate timestamps stay untouched.
    values = {"id": model.id}
    if hasattr(model, "updated_at"):
        values["updated_at"] = model.updated_at
    result = db.execute(
        update(model)
        .where(model.id == row_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return (
        db.query(model)
        .filter(model.id == row_id)
        .with_for_update()
        .populate_existing()
        .one()
    )

"""Concurrent stock changes against a file-backed database.

Each worker gets its own session and connection, the way request handlers do,
so these exercise the database-side guards rather than the identity map.
"""

import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from backoffice.core.exceptions import InsufficientStockError, InvalidStateError
from backoffice.db.base import Base
from backoffice.models import *
from backoffice.models.purchase_order import PurchaseOrderStatus
from backoffice.models.stock_mutation import StockAction, StockMutation
from backoffice.services.inventory_service import InventoryService
from backoffice.services.receiving_service import ReceivingService
from backoffice.services.stock_projection import StockProjection
from backoffice.services.stocktake_service import StocktakeService
from backoffice.services.supplier_service import SupplierService


@pytest.fixture
def session_factory(tmp_path):
    """Sessions bound to a SQLite file shared by all worker threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def run_concurrently(tasks):
    """Start one thread per task together; return what each returned or raised, in order."""
    barrier = threading.Barrier(len(tasks))
    outcomes = [None] * len(tasks)

    def worker(index, task):
        barrier.wait()
        try:
            outcomes[index] = task()
        except Exception as e:
            outcomes[index] = e

    threads = [threading.Thread(target=worker, args=(i, task)) for i, task in enumerate(tasks)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    assert not any(thread.is_alive() for thread in threads)
    return outcomes


class TestConcurrentDecrements:

    def test_parallel_sales_never_oversell(self, session_factory):
        with session_factory() as db:
            item_id = InventoryService(db).create_item("House Lager", opening_stock=5, actor_id=1).id

        def sell_one():
            with session_factory() as db:
                InventoryService(db).adjust_stock(item_id, -1, StockAction.SALE, actor_id=3)
            return "sold"

        outcomes = run_concurrently([sell_one] * 12)

        assert outcomes.count("sold") == 5
        rejected = [o for o in outcomes if o != "sold"]
        assert len(rejected) == 7
        assert all(isinstance(o, InsufficientStockError) for o in rejected)

        with session_factory() as db:
            projection = StockProjection(db)
            assert projection.check_item(item_id)["materialized"] == Decimal("0")
            assert projection.find_drift() == []
            sales = db.query(StockMutation).filter_by(item_id=item_id, action=StockAction.SALE.value).count()
            assert sales == 5


class TestConcurrentReceiving:

    def test_replayed_receipt_credits_stock_once(self, session_factory):
        with session_factory() as db:
            item = InventoryService(db).create_item("Tonic", opening_stock=2, actor_id=1)
            supplier = SupplierService(db).create_supplier("Mixers Ltd")
            po = ReceivingService(db).create_purchase_order(
                supplier.id,
                [{"inventory_item_id": item.id, "quantity_ordered": 24, "unit_cost": Decimal("0.50")}],
                actor_id=2,
            )
            item_id, po_id, line_id = item.id, po.id, po.lines[0].id

        def receive_ten():
            with session_factory() as db:
                result = ReceivingService(db).receive(
                    po_id, [{"line_id": line_id, "quantity_received": 10}], actor_id=2
                )
                return sum((line["delta"] for line in result["lines"]), Decimal("0"))

        outcomes = run_concurrently([receive_ten] * 4)

        assert all(isinstance(o, Decimal) for o in outcomes), outcomes
        assert sum(outcomes) == Decimal("10")

        with session_factory() as db:
            projection = StockProjection(db)
            assert projection.check_item(item_id)["materialized"] == Decimal("12")
            assert projection.find_drift() == []
            receipts = (
                db.query(StockMutation)
                .filter_by(item_id=item_id, action=StockAction.PURCHASE_RECEIVED.value)
                .count()
            )
            assert receipts == 1
            po = ReceivingService(db).get_purchase_order(po_id)
            assert po.status == PurchaseOrderStatus.PARTIALLY_RECEIVED
            assert po.lines[0].quantity_received == Decimal("10")


    def test_parallel_creation_gets_distinct_numbers(self, session_factory):
        with session_factory() as db:
            item_id = InventoryService(db).create_item("Tonic", actor_id=1).id
            supplier_id = SupplierService(db).create_supplier("Mixers Ltd").id

        def create_order():
            with session_factory() as db:
                po = ReceivingService(db).create_purchase_order(
                    supplier_id, [{"inventory_item_id": item_id, "quantity_ordered": 6}], actor_id=2
                )
                return po.po_number

        numbers = run_concurrently([create_order] * 5)

        assert all(isinstance(n, str) for n in numbers), numbers
        assert sorted(numbers) == ["PO1001", "PO1002", "PO1003", "PO1004", "PO1005"]

class TestConcurrentStocktake:

    @pytest.mark.parametrize("attempt", range(3))
    def test_count_racing_completion_is_booked_or_rejected(self, session_factory, attempt):
        with session_factory() as db:
            item_id = InventoryService(db).create_item("Vodka", opening_stock=10, actor_id=1).id
            audit = StocktakeService(db).start_audit(actor_id=2)
            audit_id, line_id = audit.id, audit.lines[0].id

        def complete():
            with session_factory() as db:
                StocktakeService(db).complete_audit(audit_id, actor_id=2)
            return "completed"

        def count():
            with session_factory() as db:
                StocktakeService(db).record_count(line_id, 7, actor_id=3)
            return "counted"

        completed, counted = run_concurrently([complete, count])

        assert completed == "completed"
        with session_factory() as db:
            stock = StockProjection(db).check_item(item_id)["materialized"]
            if counted == "counted":
                # The count landed before completion, so completion booked it.
                assert stock == Decimal("7")
            else:
                assert isinstance(counted, InvalidStateError)
                assert stock == Decimal("10")
            assert StockProjection(db).find_drift() == []

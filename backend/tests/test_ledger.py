"""Tests for ledgered stock adjustments, ledger history and the stock projection."""

import pytest
from decimal import Decimal

from sqlalchemy import text

from backoffice.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.stock_mutation import ReferenceType, StockAction, StockMutation
from backoffice.services.inventory_service import InventoryService
from backoffice.services.ledger import LedgerRecorder
from backoffice.services.stock_projection import StockProjection
from scripts.check_stock_ledger import run as run_ledger_check


def _ledger_sum(db_session, item_id):
    return sum(
        (e.quantity_change for e in db_session.query(StockMutation).filter_by(item_id=item_id)),
        Decimal("0"),
    )


class TestCreateItem:

    def test_opening_stock_is_ledgered(self, db_session, make_item):
        item = make_item("Tonic", stock=24)
        entries = db_session.query(StockMutation).filter_by(item_id=item.id).all()
        assert len(entries) == 1
        assert entries[0].action == StockAction.OPENING_BALANCE.value
        assert entries[0].quantity_change == Decimal("24")
        assert item.current_stock == Decimal("24")

    def test_zero_opening_stock_writes_no_entry(self, db_session, make_item):
        item = make_item("Limes", stock=0)
        assert db_session.query(StockMutation).filter_by(item_id=item.id).count() == 0

    def test_negative_opening_stock_rejected(self, make_item):
        with pytest.raises(ValidationError):
            make_item("Limes", stock=-1)

    def test_unknown_supplier_rejected(self, make_item):
        with pytest.raises(NotFoundError):
            make_item("Limes", supplier_id=999)

    def test_update_cannot_touch_stock(self, db_session, test_item):
        with pytest.raises(ValidationError):
            InventoryService(db_session).update_item(test_item.id, current_stock=1)

    def test_update_descriptive_fields(self, db_session, test_item):
        item = InventoryService(db_session).update_item(test_item.id, name="Pilsner", minimum_stock=10)
        assert item.name == "Pilsner"
        assert item.minimum_stock == Decimal("10")
        assert item.current_stock == Decimal("50")


class TestListItems:

    def test_filters(self, db_session, make_item):
        make_item("Vodka", stock=2, minimum_stock=5)
        make_item("Flour", stock=20, minimum_stock=5, inventory_type="kitchen")
        retired = make_item("Old Cider", stock=0)
        service = InventoryService(db_session)
        service.deactivate_item(retired.id)

        items, total = service.list_items()
        assert total == 2

        items, total = service.list_items(include_inactive=True)
        assert total == 3

        items, _ = service.list_items(inventory_type="kitchen")
        assert [i.name for i in items] == ["Flour"]

        items, _ = service.list_items(search="vod")
        assert [i.name for i in items] == ["Vodka"]

        assert [i.name for i in service.low_stock_items()] == ["Vodka"]


class TestAdjustStock:

    def test_pairs_stock_change_with_ledger_entry(self, db_session, test_item):
        item, entry = InventoryService(db_session).adjust_stock(
            test_item.id,
            -5,
            StockAction.SALE,
            reference_type=ReferenceType.ORDER,
            reference_id=77,
            actor_id=9,
            notes="table 4",
        )
        assert item.current_stock == Decimal("45")
        assert entry.action == "sale"
        assert entry.quantity_change == Decimal("-5")
        assert entry.reference_type == "order"
        assert entry.reference_id == 77
        assert entry.logged_by == 9
        assert entry.notes == "table 4"
        assert entry.created_at is not None

    def test_rejected_adjustment_writes_nothing(self, db_session, test_item):
        with pytest.raises(InsufficientStockError):
            InventoryService(db_session).adjust_stock(test_item.id, -500, StockAction.SALE)
        db_session.refresh(test_item)
        assert test_item.current_stock == Decimal("50")
        assert db_session.query(StockMutation).filter_by(item_id=test_item.id).count() == 1

    def test_caller_failure_rolls_back_adjustment(self, db_session, test_item):
        with pytest.raises(RuntimeError):
            with unit_of_work(db_session):
                InventoryService(db_session).adjust_stock(test_item.id, 10, StockAction.MANUAL_ADJUSTMENT)
                raise RuntimeError("receipt printer on fire")

        db_session.refresh(test_item)
        assert test_item.current_stock == Decimal("50")
        assert _ledger_sum(db_session, test_item.id) == Decimal("50")

    def test_set_stock_records_difference(self, db_session, test_item):
        item, entry = InventoryService(db_session).set_stock(test_item.id, 47, actor_id=3, notes="recount")
        assert item.current_stock == Decimal("47")
        assert entry.action == StockAction.MANUAL_ADJUSTMENT.value
        assert entry.quantity_change == Decimal("-3")

    def test_set_stock_unchanged_writes_no_entry(self, db_session, test_item):
        item, entry = InventoryService(db_session).set_stock(test_item.id, 50)
        assert entry is None
        assert db_session.query(StockMutation).filter_by(item_id=test_item.id).count() == 1

    def test_ledger_sum_matches_stock_after_mixed_operations(self, db_session, test_item):
        service = InventoryService(db_session)
        service.adjust_stock(test_item.id, -7, StockAction.SALE)
        service.adjust_stock(test_item.id, 12, StockAction.PURCHASE_RECEIVED)
        with pytest.raises(InsufficientStockError):
            service.adjust_stock(test_item.id, -100, StockAction.WASTAGE)
        service.set_stock(test_item.id, 30)
        service.adjust_stock(test_item.id, Decimal("0.25"), StockAction.RETURN_INCREMENT)

        db_session.refresh(test_item)
        assert test_item.current_stock == Decimal("30.25")
        assert _ledger_sum(db_session, test_item.id) == test_item.current_stock


class TestHistory:

    def test_newest_first_with_pagination(self, db_session, test_item):
        service = InventoryService(db_session)
        for delta in (-1, -2, -3):
            service.adjust_stock(test_item.id, delta, StockAction.SALE)

        entries, total = service.history(test_item.id, skip=0, limit=2)
        assert total == 4
        assert [e.quantity_change for e in entries] == [Decimal("-3"), Decimal("-2")]

        entries, _ = service.history(test_item.id, action=StockAction.OPENING_BALANCE)
        assert len(entries) == 1

    def test_filter_by_reference(self, db_session, test_item):
        recorder = LedgerRecorder(db_session)
        InventoryService(db_session).adjust_stock(
            test_item.id, -1, StockAction.SALE, reference_type=ReferenceType.ORDER, reference_id=5
        )
        entries, total = recorder.history(reference_type="order", reference_id=5)
        assert total == 1
        assert entries[0].item_id == test_item.id

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            InventoryService(db_session).history(404)


class TestStockProjection:

    def test_no_drift_after_normal_operations(self, db_session, test_item):
        InventoryService(db_session).adjust_stock(test_item.id, -8, StockAction.SALE)
        report = StockProjection(db_session).check_item(test_item.id)
        assert report["materialized"] == Decimal("42")
        assert report["ledger"] == Decimal("42")
        assert report["drift"] == 0
        assert StockProjection(db_session).find_drift() == []

    def test_detects_and_rebuilds_drift(self, db_session, test_item, make_item):
        make_item("Untouched", stock=5)
        db_session.execute(
            text("UPDATE inventory_items SET current_stock = 44 WHERE id = :id"), {"id": test_item.id}
        )
        db_session.commit()

        projection = StockProjection(db_session)
        drifted = projection.find_drift()
        assert [row["item_id"] for row in drifted] == [test_item.id]
        assert drifted[0]["drift"] == Decimal("-6")

        result = projection.rebuild_item(test_item.id)
        assert result["previous"] == Decimal("44")
        assert result["rebuilt"] == Decimal("50")
        assert result["changed"] is True
        assert projection.find_drift() == []
        # Rebuilding repairs the cache only; the ledger is untouched.
        assert db_session.query(StockMutation).filter_by(item_id=test_item.id).count() == 1

    def test_ledger_check_script(self, db_session, test_item, capsys):
        assert run_ledger_check(db_session) == 0

        db_session.execute(
            text("UPDATE inventory_items SET current_stock = 1 WHERE id = :id"), {"id": test_item.id}
        )
        db_session.commit()
        assert run_ledger_check(db_session) == 1
        assert run_ledger_check(db_session, repair=True) == 0
        assert run_ledger_check(db_session, item_id=test_item.id) == 0
        assert "drift" in capsys.readouterr().out

    def test_ledger_check_script_unknown_item(self, db_session, capsys):
        assert run_ledger_check(db_session, item_id=9999) == 1
        assert "Cannot check item 9999" in capsys.readouterr().out

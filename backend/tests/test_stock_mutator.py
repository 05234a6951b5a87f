"""Tests for the stock mutator: atomic deltas, the non-negative guard and absolute counts."""

import pytest
from decimal import Decimal

from sqlalchemy import text

from backoffice.core.exceptions import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from backoffice.db.unit_of_work import unit_of_work
from backoffice.models.stock_mutation import StockAction
from backoffice.services.inventory_service import InventoryService
from backoffice.services.stock_mutator import StockMutator, as_quantity
from backoffice.services.stock_projection import StockProjection


class TestAsQuantity:

    def test_accepts_ints_strings_and_floats(self):
        assert as_quantity(5) == Decimal("5")
        assert as_quantity("2.5") == Decimal("2.5")
        assert as_quantity(0.1) == Decimal("0.1")

    def test_rounds_to_three_places(self):
        assert as_quantity("1.23456") == Decimal("1.235")

    @pytest.mark.parametrize("bad", ["abc", None, True, float("nan"), "Infinity"])
    def test_rejects_malformed_values(self, bad):
        with pytest.raises(ValidationError):
            as_quantity(bad)


class TestApplyDelta:

    def test_increment(self, db_session, test_item):
        with unit_of_work(db_session):
            item = StockMutator(db_session).apply_delta(test_item.id, 10)
        assert item.current_stock == Decimal("60")

    def test_decrement_to_exactly_zero(self, db_session, test_item):
        with unit_of_work(db_session):
            item = StockMutator(db_session).apply_delta(test_item.id, -50)
        assert item.current_stock == Decimal("0")

    def test_insufficient_stock_leaves_state_unchanged(self, db_session, test_item):
        with pytest.raises(InsufficientStockError) as exc_info:
            with unit_of_work(db_session):
                StockMutator(db_session).apply_delta(test_item.id, -51)

        assert exc_info.value.available == Decimal("50")
        assert exc_info.value.requested == Decimal("51")
        assert exc_info.value.item_id == test_item.id
        db_session.refresh(test_item)
        assert test_item.current_stock == Decimal("50")

    def test_allow_negative(self, db_session, test_item):
        with unit_of_work(db_session):
            item = StockMutator(db_session).apply_delta(test_item.id, -60, allow_negative=True)
        assert item.current_stock == Decimal("-10")

    def test_guard_uses_database_value_not_loaded_object(self, db_session, test_item):
        """A stale in-memory level must not let a decrement through."""
        assert test_item.current_stock == Decimal("50")
        # Another connection sells most of the stock behind this session's back.
        db_session.execute(
            text("UPDATE inventory_items SET current_stock = 3 WHERE id = :id"), {"id": test_item.id}
        )

        with pytest.raises(InsufficientStockError) as exc_info:
            StockMutator(db_session).apply_delta(test_item.id, -5)
        assert exc_info.value.available == Decimal("3")

    def test_zero_delta_is_a_no_op(self, db_session, test_item):
        item = StockMutator(db_session).apply_delta(test_item.id, 0)
        assert item.current_stock == Decimal("50")

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            StockMutator(db_session).apply_delta(9999, 1)

    def test_inactive_item_rejected(self, db_session, test_item):
        InventoryService(db_session).deactivate_item(test_item.id)
        with pytest.raises(InvalidStateError):
            StockMutator(db_session).apply_delta(test_item.id, -1)

    def test_inactive_item_allowed_for_reversals(self, db_session, test_item):
        InventoryService(db_session).deactivate_item(test_item.id)
        with unit_of_work(db_session):
            item = StockMutator(db_session).apply_delta(test_item.id, 5, allow_inactive=True)
        assert item.current_stock == Decimal("55")

    def test_failure_aborts_enclosing_unit_of_work(self, db_session, make_item):
        first = make_item("Gin", stock=10)
        second = make_item("Tonic", stock=1)

        with pytest.raises(InsufficientStockError):
            with unit_of_work(db_session):
                mutator = StockMutator(db_session)
                mutator.apply_delta(first.id, -4)
                mutator.apply_delta(second.id, -2)

        db_session.refresh(first)
        db_session.refresh(second)
        assert first.current_stock == Decimal("10")
        assert second.current_stock == Decimal("1")

    def test_fractional_stock_drains_to_exactly_zero(self, db_session, make_item):
        gin = make_item("Gin", stock="0.3", unit="litre")
        service = InventoryService(db_session)

        service.adjust_stock(gin.id, Decimal("-0.1"), StockAction.SALE)
        item, _ = service.adjust_stock(gin.id, Decimal("-0.2"), StockAction.SALE)
        assert item.current_stock == Decimal("0")

        with pytest.raises(InsufficientStockError):
            service.adjust_stock(gin.id, Decimal("-0.001"), StockAction.SALE)
        assert StockProjection(db_session).find_drift() == []

    def test_many_small_decrements_stay_exact(self, db_session, make_item):
        syrup = make_item("Syrup", stock="1", unit="litre")
        service = InventoryService(db_session)
        for _ in range(10):
            item, _ = service.adjust_stock(syrup.id, Decimal("-0.1"), StockAction.SALE)
        assert item.current_stock == Decimal("0")
        assert StockProjection(db_session).ledger_balance(syrup.id) == Decimal("0")


class TestSetStock:

    def test_returns_previous_level(self, db_session, test_item):
        with unit_of_work(db_session):
            item, previous = StockMutator(db_session).set_stock(test_item.id, 42)
        assert previous == Decimal("50")
        assert item.current_stock == Decimal("42")

    def test_negative_level_rejected(self, db_session, test_item):
        with pytest.raises(ValidationError):
            StockMutator(db_session).set_stock(test_item.id, -1)

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            StockMutator(db_session).set_stock(9999, 1)

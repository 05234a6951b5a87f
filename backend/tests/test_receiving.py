"""Tests for purchase orders and the receiving reconciler."""

import pytest
from decimal import Decimal

from backoffice.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from backoffice.models.purchase_order import PurchaseOrderStatus
from backoffice.models.stock_mutation import StockAction, StockMutation
from backoffice.services.receiving_service import ReceivingService, clamp_received


@pytest.fixture
def po_setup(db_session, test_supplier, make_item):
    """A pending PO for 30 lager and 12 tonic."""
    lager = make_item("Lager", stock=10)
    tonic = make_item("Tonic", stock=0)
    po = ReceivingService(db_session).create_purchase_order(
        supplier_id=test_supplier.id,
        lines=[
            {"inventory_item_id": lager.id, "quantity_ordered": 30, "unit_cost": Decimal("1.20")},
            {"inventory_item_id": tonic.id, "quantity_ordered": 12, "unit_cost": Decimal("0.50")},
        ],
        actor_id=1,
    )
    lager_line, tonic_line = po.lines
    return {
        "po": po,
        "lager": lager,
        "tonic": tonic,
        "lager_line": lager_line,
        "tonic_line": tonic_line,
        "service": ReceivingService(db_session),
        "db": db_session,
    }


def _purchase_entries(db_session, item_id):
    return (
        db_session.query(StockMutation)
        .filter_by(item_id=item_id, action=StockAction.PURCHASE_RECEIVED.value)
        .order_by(StockMutation.id)
        .all()
    )


class TestClampReceived:

    @pytest.mark.parametrize(
        "requested,ordered,expected",
        [
            (20, 30, 20),
            (45, 30, 30),
            (-5, 30, 0),
            (7, 0, 7),
            (7, None, 7),
        ],
    )
    def test_bounds(self, requested, ordered, expected):
        ordered = Decimal(str(ordered)) if ordered is not None else None
        assert clamp_received(Decimal(str(requested)), ordered) == Decimal(str(expected))


class TestCreatePurchaseOrder:

    def test_numbering_and_total(self, po_setup, test_supplier, db_session):
        po = po_setup["po"]
        assert po.po_number == "PO1001"
        assert po.status == PurchaseOrderStatus.PENDING
        assert po.total_amount == Decimal("42.00")
        assert po.created_by == 1

        second = ReceivingService(db_session).create_purchase_order(
            supplier_id=test_supplier.id,
            lines=[{"inventory_item_id": po_setup["lager"].id, "quantity_ordered": 1, "unit_cost": 1}],
        )
        assert second.po_number == "PO1002"

    def test_requires_lines(self, db_session, test_supplier):
        with pytest.raises(ValidationError):
            ReceivingService(db_session).create_purchase_order(supplier_id=test_supplier.id, lines=[])

    def test_unknown_supplier(self, db_session, test_item):
        with pytest.raises(NotFoundError):
            ReceivingService(db_session).create_purchase_order(
                supplier_id=999, lines=[{"inventory_item_id": test_item.id, "quantity_ordered": 1}]
            )


class TestReceive:

    def test_partial_then_full(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]

        result = service.receive(po.id, [{"line_id": po_setup["lager_line"].id, "quantity_received": 20}], actor_id=4)
        assert result["status"] == PurchaseOrderStatus.PARTIALLY_RECEIVED
        assert result["lines"][0]["delta"] == Decimal("20")
        assert po_setup["lager"].current_stock == Decimal("30")

        result = service.receive(
            po.id,
            [
                {"line_id": po_setup["lager_line"].id, "quantity_received": 30},
                {"line_id": po_setup["tonic_line"].id, "quantity_received": 12},
            ],
            actor_id=4,
        )
        assert result["status"] == PurchaseOrderStatus.RECEIVED
        assert [line["delta"] for line in result["lines"]] == [Decimal("10"), Decimal("12")]
        assert po_setup["lager"].current_stock == Decimal("40")
        assert po_setup["tonic"].current_stock == Decimal("12")
        assert result["purchase_order"].received_by == 4
        assert result["purchase_order"].actual_delivery_date is not None

    def test_replay_does_not_double_credit(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        receipt = [{"line_id": po_setup["lager_line"].id, "quantity_received": 20}]

        service.receive(po.id, receipt)
        result = service.receive(po.id, receipt)

        assert result["lines"][0]["delta"] == Decimal("0")
        assert po_setup["lager"].current_stock == Decimal("30")
        assert len(_purchase_entries(po_setup["db"], po_setup["lager"].id)) == 1

    def test_over_receipt_is_clamped_to_ordered(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        service.receive(po.id, [{"line_id": po_setup["lager_line"].id, "quantity_received": 45}])

        line = po_setup["lager_line"]
        po_setup["db"].refresh(line)
        assert line.quantity_received == Decimal("30")
        assert po_setup["lager"].current_stock == Decimal("40")

    def test_received_quantity_never_decreases(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        service.receive(po.id, [{"line_id": po_setup["lager_line"].id, "quantity_received": 20}])
        result = service.receive(po.id, [{"line_id": po_setup["lager_line"].id, "quantity_received": 5}])

        assert result["lines"][0]["quantity_received"] == Decimal("20")
        assert result["lines"][0]["delta"] == Decimal("0")
        assert po_setup["lager"].current_stock == Decimal("30")

    def test_negative_request_is_a_no_op(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        result = service.receive(po.id, [{"line_id": po_setup["lager_line"].id, "quantity_received": -3}])
        assert result["lines"][0]["delta"] == Decimal("0")
        assert result["status"] == PurchaseOrderStatus.PENDING
        assert po_setup["lager"].current_stock == Decimal("10")

    def test_unknown_lines_are_skipped(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        result = service.receive(
            po.id,
            [
                {"line_id": 9999, "quantity_received": 5},
                {"line_id": po_setup["tonic_line"].id, "quantity_received": 2},
            ],
        )
        assert [line["line_id"] for line in result["lines"]] == [po_setup["tonic_line"].id]
        assert po_setup["tonic"].current_stock == Decimal("2")

    def test_line_without_ordered_quantity_uses_request(self, db_session, test_supplier, test_item):
        service = ReceivingService(db_session)
        po = service.create_purchase_order(
            supplier_id=test_supplier.id,
            lines=[{"inventory_item_id": test_item.id, "quantity_ordered": 0}],
        )
        result = service.receive(po.id, [{"line_id": po.lines[0].id, "quantity_received": 6}])
        assert result["lines"][0]["delta"] == Decimal("6")
        assert result["status"] == PurchaseOrderStatus.RECEIVED
        assert test_item.current_stock == Decimal("56")

    def test_received_order_is_idempotent(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        full = [
            {"line_id": po_setup["lager_line"].id, "quantity_received": 30},
            {"line_id": po_setup["tonic_line"].id, "quantity_received": 12},
        ]
        service.receive(po.id, full)
        result = service.receive(po.id, full)
        assert result["status"] == PurchaseOrderStatus.RECEIVED
        assert result["lines"] == []
        assert po_setup["lager"].current_stock == Decimal("40")

    def test_cancelled_order_rejected(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        service.cancel_purchase_order(po.id)
        with pytest.raises(InvalidStateError):
            service.receive(po.id, [{"line_id": po_setup["lager_line"].id, "quantity_received": 1}])
        assert po_setup["lager"].current_stock == Decimal("10")

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            ReceivingService(db_session).receive(999, [])

    def test_received_order_cannot_be_cancelled(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        service.receive(
            po.id,
            [
                {"line_id": po_setup["lager_line"].id, "quantity_received": 30},
                {"line_id": po_setup["tonic_line"].id, "quantity_received": 12},
            ],
        )
        with pytest.raises(InvalidStateError):
            service.cancel_purchase_order(po.id)

    def test_cancel_keeps_received_stock(self, po_setup):
        service, po = po_setup["service"], po_setup["po"]
        service.receive(po.id, [{"line_id": po_setup["lager_line"].id, "quantity_received": 20}])
        cancelled = service.cancel_purchase_order(po.id)
        assert cancelled.status == PurchaseOrderStatus.CANCELLED
        assert po_setup["lager"].current_stock == Decimal("30")

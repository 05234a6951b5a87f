"""SQLAlchemy models."""

from backoffice.models.supplier import Supplier
from backoffice.models.inventory_item import InventoryItem, InventoryType
from backoffice.models.stock_mutation import StockMutation, StockAction, ReferenceType
from backoffice.models.purchase_order import PurchaseOrder, PurchaseOrderLine, PurchaseOrderStatus
from backoffice.models.stock_transfer import StockTransfer, TransferStatus
from backoffice.models.inventory_audit import InventoryAudit, AuditLine, AuditStatus
from backoffice.models.wastage import WastageLog
from backoffice.models.order import (
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from backoffice.models.product_return import ProductReturn

__all__ = [
    "Supplier",
    "InventoryItem",
    "InventoryType",
    "StockMutation",
    "StockAction",
    "ReferenceType",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderStatus",
    "StockTransfer",
    "TransferStatus",
    "InventoryAudit",
    "AuditLine",
    "AuditStatus",
    "WastageLog",
    "Order",
    "OrderLine",
    "OrderStatus",
    "OrderType",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "ProductReturn",
]

"""API routes."""

from fastapi import APIRouter

from backoffice.api.routes import (
    inventory,
    inventory_audits,
    orders,
    product_returns,
    purchase_orders,
    stock_transfers,
    suppliers,
    wastage,
)

api_router = APIRouter()

api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(suppliers.router, prefix="/suppliers", tags=["suppliers"])
api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["purchase-orders"])
api_router.include_router(stock_transfers.router, prefix="/stock-transfers", tags=["stock-transfers"])
api_router.include_router(inventory_audits.router, prefix="/inventory-audits", tags=["inventory-audits"])
api_router.include_router(wastage.router, prefix="/wastage", tags=["wastage"])
api_router.include_router(product_returns.router, prefix="/product-returns", tags=["product-returns"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])

"""
Main API router for v1 endpoints
"""
from fastapi import APIRouter

from stockledger.api.v1 import allocations
from stockledger.api.v1.stock import alerts, items, transactions

api_router = APIRouter()

# Stock
api_router.include_router(items.router, prefix="/stock/items", tags=["Stock Items"])
api_router.include_router(transactions.router, prefix="/stock/transactions", tags=["Stock Transactions"])
api_router.include_router(alerts.router, prefix="/stock", tags=["Stock Alerts"])

# Allocations
api_router.include_router(allocations.router, prefix="/allocations", tags=["Allocations"])

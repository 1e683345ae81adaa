"""
Stock Ledger SQLAlchemy Models
"""

# Import all models to ensure they are registered with SQLAlchemy
from .stock import StockItem, LedgerTransaction, StockAlert
from .allocation import AllocationEvent, AllocationLine, SubjectAllocation, AllocationJournal

__all__ = [
    "StockItem",
    "LedgerTransaction",
    "StockAlert",
    "AllocationEvent",
    "AllocationLine",
    "SubjectAllocation",
    "AllocationJournal",
]

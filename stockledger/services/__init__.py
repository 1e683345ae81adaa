"""
Stock Ledger Services
"""
from .ledger_engine import InventoryLedger, build_memory_ledger, build_sql_ledger

__all__ = ["InventoryLedger", "build_memory_ledger", "build_sql_ledger"]

"""
Stock Ledger
Inventory ledger and allocation engine for drugs, feed and supplements
"""

__version__ = "1.0.0"

"""
Stock services: store, balances, availability, alerts and valuation
"""

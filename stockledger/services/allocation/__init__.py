"""
Allocation services: coordinator, feeding, treatment and recovery
"""

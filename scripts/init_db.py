#!/usr/bin/env python3
"""
Stock Ledger Database Initialization Script
Creates the ledger tables and settles interrupted allocations
"""
import sys

from stockledger.core.config import settings
from stockledger.core.database import SessionLocal, check_db_connection, init_db
from stockledger.core.logging import get_logger, setup_logging
from stockledger.services.ledger_engine import build_sql_ledger

setup_logging()
logger = get_logger("database")


def init_database():
    """Create tables, sweep alert state and run allocation recovery"""
    logger.info(f"Initializing database at {settings.DATABASE_URL}")

    if not check_db_connection():
        raise RuntimeError("Database connection failed")

    init_db()

    ledger = build_sql_ledger(SessionLocal)
    changed = ledger.monitor.sweep()
    report = ledger.recover()
    logger.info(
        f"Alert sweep changed {changed} items; recovery completed {len(report.completed)}, "
        f"compensated {len(report.compensated)}, failed {len(report.failed)}"
    )


if __name__ == "__main__":
    try:
        init_database()
        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)

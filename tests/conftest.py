"""
Test Configuration and Fixtures
Shared testing infrastructure for the stock ledger
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_stockledger.db")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("RUN_RECOVERY_ON_STARTUP", "false")

import pytest
from decimal import Decimal
from typing import Any, Callable, Dict, Generator
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from stockledger.api.deps import get_ledger
from stockledger.core.database import build_engine, build_session_factory, init_db
from stockledger.core.security import create_access_token
from stockledger.main import app
from stockledger.models.stock import StockItem
from stockledger.services.ledger_engine import InventoryLedger
from stockledger.services.stock.locks import ItemLockRegistry
from stockledger.services.stock.sql_store import SqlLedgerStore
from stockledger.services.stock.store import InMemoryLedgerStore


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def sql_session_factory(tmp_path):
    """Session factory over a fresh SQLite file per test"""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}", poolclass=NullPool)
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory) -> SqlLedgerStore:
    return SqlLedgerStore(sql_session_factory)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every ledger test runs against both backends"""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def ledger(store) -> InventoryLedger:
    return InventoryLedger(store, locks=ItemLockRegistry(30.0), max_attempts=5, grace_seconds=60)


@pytest.fixture
def sample_drug_data() -> Dict[str, Any]:
    """Sample drug stock item"""
    return {
        "name": "Penicillin",
        "category": "antibiotic",
        "unit": "ml",
        "quantity_on_hand": Decimal("500"),
        "cost_per_unit": Decimal("0.15"),
        "reorder_point": Decimal("50"),
        "reorder_quantity": Decimal("200"),
        "withdrawal_period_days": 10,
        "lot_number": "PEN-2024-01",
    }


@pytest.fixture
def sample_feed_data() -> Dict[str, Any]:
    """Sample feed stock item"""
    return {
        "name": "Grain Mix",
        "category": "grain-mix",
        "unit": "lbs",
        "quantity_on_hand": Decimal("5000"),
        "cost_per_unit": Decimal("0.25"),
        "reorder_point": Decimal("1000"),
        "reorder_quantity": Decimal("5000"),
    }


@pytest.fixture
def make_item(ledger) -> Callable[..., StockItem]:
    """Create an item with sensible defaults; keyword arguments override them"""
    counter = {"n": 0}

    def _make(**overrides) -> StockItem:
        counter["n"] += 1
        data = {
            "name": f"Item {counter['n']}",
            "category": "antibiotic",
            "unit": "ml",
            "quantity_on_hand": Decimal("100"),
            "cost_per_unit": Decimal("1.00"),
            "reorder_point": Decimal("0"),
        }
        data.update(overrides)
        return ledger.create_item(data)

    return _make


@pytest.fixture
def api_ledger() -> InventoryLedger:
    return InventoryLedger(InMemoryLedgerStore(), locks=ItemLockRegistry(5.0))


@pytest.fixture
def client(api_ledger: InventoryLedger) -> Generator[TestClient, None, None]:
    """Test client with the ledger dependency pointed at an in-memory ledger"""
    app.dependency_overrides[get_ledger] = lambda: api_ledger
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """Bearer token for a test operator"""
    token = create_access_token({"sub": "op-1", "name": "Test Operator"})
    return {"Authorization": f"Bearer {token}"}


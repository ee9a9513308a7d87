from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Generator, List

import pytest
from fastapi.testclient import TestClient

from feedback_flow.config import Settings
from feedback_flow.repository import DuckDBStore, InMemoryDB

TESTER = "tester-1"
OTHER_TESTER = "tester-2"

SAMPLE_DATA: Dict[str, List[Dict[str, Any]]] = {
    "purchases": [
        {
            "id": "a",
            "testerUuid": TESTER,
            "date": "2024-01-10",
            "order": "ORD-001",
            "description": "Casque audio Bluetooth",
            "amount": 10.99,
            "screenshot": "receipt-a.webp",
            "refunded": True,
        },
        {
            "id": "b",
            "testerUuid": TESTER,
            "date": "2024-02-05",
            "order": "ORD-002",
            "description": "Lampe de bureau LED",
            "amount": 20.99,
            "screenshot": "receipt-b.webp",
            "refunded": False,
        },
        {
            "id": "c",
            "testerUuid": TESTER,
            "date": "2024-03-01",
            "order": "ORD-003",
            "description": "Câble USB-C tressé",
            "amount": 59.99,
            "screenshot": "receipt-c.webp",
            "refunded": False,
        },
        {
            "id": "d",
            "testerUuid": TESTER,
            "date": "2024-02-20",
            "order": "ORD-004",
            "description": "Clavier mécanique",
            "amount": 30.0,
            "screenshot": "receipt-d.webp",
            "screenshotSummary": "Clavier, 30 EUR",
            "refunded": False,
        },
        {
            "id": "x",
            "testerUuid": OTHER_TESTER,
            "date": "2024-01-15",
            "order": "ORD-900",
            "description": "Casque gaming",
            "amount": 99.0,
            "screenshot": "receipt-x.webp",
            "refunded": True,
        },
    ],
    "feedbacks": [
        {"purchase": "a", "date": "2024-01-12", "feedback": "Très bon son"},
        {"purchase": "b", "date": "2024-02-07", "feedback": "Lumière agréable"},
        {"purchase": "d", "date": "2024-02-22", "feedback": "Frappe agréable"},
        {"purchase": "x", "date": "2024-01-16", "feedback": "Correct"},
    ],
    "publications": [
        {"purchase": "a", "date": "2024-01-14", "screenshot": "pub-a.webp"},
        {"purchase": "d", "date": "2024-02-24", "screenshot": "pub-d.webp"},
        {"purchase": "x", "date": "2024-01-17", "screenshot": "pub-x.webp"},
    ],
    "refunds": [
        {
            "purchase": "a",
            "date": "2024-01-20",
            "refundDate": "2024-01-20",
            "amount": 10.99,
            "transactionId": "tx-1",
        },
        {
            "purchase": "x",
            "date": "2024-01-25",
            "refundDate": "2024-01-25",
            "amount": 95.0,
        },
    ],
}


@pytest.fixture(autouse=True)
def _isolate_logging_and_telemetry(tmp_path, monkeypatch):
    """Keep telemetry out of the repo and let caplog see package loggers."""

    monkeypatch.setenv("TELEMETRY_LOG_PATH", str(tmp_path / "telemetry.ndjson"))
    monkeypatch.setattr(logging.getLogger("feedback_flow"), "propagate", True)


@pytest.fixture
def sample_data() -> Dict[str, List[Dict[str, Any]]]:
    return copy.deepcopy(SAMPLE_DATA)


@pytest.fixture
def memory_db(sample_data) -> InMemoryDB:
    return InMemoryDB(sample_data)


@pytest.fixture
def duckdb_store(tmp_path, sample_data) -> DuckDBStore:
    store = DuckDBStore(tmp_path / "feedback_flow.duckdb")
    store.reset(sample_data)
    return store


@pytest.fixture
def client(memory_db) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client over the in-memory sample data."""

    from feedback_flow.main import create_app

    app = create_app(settings=Settings(), db=memory_db)
    with TestClient(app) as test_client:
        yield test_client

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import BulkWriteError

from app.core import lead_serials
from app.core.exceptions import StorageError
from app.core.sequence import SequenceAllocator, set_sequence_allocator
from app.db.counter_store import CounterStore, InMemoryCounterStore


class FlakyCounterStore(CounterStore):
    """Wraps a real store and fails the next N increments before touching it."""

    def __init__(self, inner: CounterStore, failures: int = 1) -> None:
        self.inner = inner
        self.failures = failures
        self.calls = 0

    async def increment_and_get(self, collection_key, record_id, delta, create_if_missing, initial_value):
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("simulated connection reset")
        return await self.inner.increment_and_get(
            collection_key, record_id, delta, create_if_missing, initial_value
        )

    async def get_value(self, collection_key, record_id):
        return await self.inner.get_value(collection_key, record_id)


@pytest.fixture()
def store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture()
def allocator(store: InMemoryCounterStore) -> SequenceAllocator:
    return SequenceAllocator(store, baseline=1000)


@pytest.fixture(autouse=True)
def reset_app_allocator():
    yield
    set_sequence_allocator(None)


@pytest.fixture()
def flaky_store(store: InMemoryCounterStore) -> FlakyCounterStore:
    return FlakyCounterStore(store, failures=1)


class FakeLead(SimpleNamespace):
    """Stand-in for the Beanie Lead document so no database is needed."""

    inserted: list = []
    fail_inserts = False
    reject_rows: set = set() # insert_many indexes that fail with a duplicate key
    collection = MagicMock()

    async def insert(self):
        if FakeLead.fail_inserts:
            raise RuntimeError("duplicate key")
        self.id = f"lead-{self.serial_number}"
        FakeLead.inserted.append(self)

    @classmethod
    async def insert_many(cls, docs, ordered=True):
        if cls.fail_inserts:
            raise RuntimeError("bulk write failed")
        errors = []
        for idx, doc in enumerate(docs):
            if idx in cls.reject_rows:
                errors.append({"index": idx, "code": 11000, "errmsg": "E11000 duplicate key error"})
                if ordered:
                    break
                continue
            cls.inserted.append(doc)
        if errors:
            raise BulkWriteError({"writeErrors": errors, "nInserted": len(docs) - len(errors)})

    @classmethod
    def get_motor_collection(cls):
        return cls.collection


@pytest.fixture()
def fake_lead(monkeypatch: pytest.MonkeyPatch):
    FakeLead.inserted = []
    FakeLead.fail_inserts = False
    FakeLead.reject_rows = set()
    FakeLead.collection = MagicMock()
    monkeypatch.setattr(lead_serials, "Lead", FakeLead)
    return FakeLead


@pytest.fixture()
def audit_mock(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    mock = AsyncMock()
    monkeypatch.setattr(lead_serials, "log_audit", mock)
    return mock

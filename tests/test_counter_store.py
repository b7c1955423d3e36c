from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson.errors import InvalidDocument
from pymongo import ReturnDocument
from pymongo.errors import NetworkTimeout, ServerSelectionTimeoutError

from app.core.exceptions import CounterNotFoundError, StorageError
from app.db.counter_store import InMemoryCounterStore, MongoCounterStore


def _mongo_store(collection: MagicMock) -> tuple[MongoCounterStore, MagicMock]:
    database = MagicMock()
    database.__getitem__.return_value = collection
    return MongoCounterStore(database), database


def test_mongo_increment_is_one_atomic_upsert() -> None:
    collection = MagicMock()
    collection.find_one_and_update = AsyncMock(return_value={"_id": "lead_serial", "seq": 1005})
    store, database = _mongo_store(collection)

    value = asyncio.run(store.increment_and_get("counters", "lead_serial", 5, True, 1000))

    assert value == 1005
    database.__getitem__.assert_called_once_with("counters")
    collection.find_one_and_update.assert_awaited_once_with(
        {"_id": "lead_serial"},
        [
            {
                "$set": {
                    "seq": {"$add": [{"$ifNull": ["$seq", 1000]}, 5]},
                    "updated_at": "$$NOW",
                }
            }
        ],
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    # No separate read or write
    collection.find_one.assert_not_called()
    collection.update_one.assert_not_called()
    collection.insert_one.assert_not_called()


def test_mongo_driver_error_becomes_storage_error() -> None:
    collection = MagicMock()
    cause = ServerSelectionTimeoutError("no primary available")
    collection.find_one_and_update = AsyncMock(side_effect=cause)
    store, _ = _mongo_store(collection)

    with pytest.raises(StorageError) as excinfo:
        asyncio.run(store.increment_and_get("counters", "lead_serial", 1, True, 1000))

    assert excinfo.value.__cause__ is cause


def test_mongo_missing_counter_without_upsert() -> None:
    collection = MagicMock()
    collection.find_one_and_update = AsyncMock(return_value=None)
    store, _ = _mongo_store(collection)

    with pytest.raises(CounterNotFoundError) as excinfo:
        asyncio.run(store.increment_and_get("counters", "ghost", 1, False, 1000))

    assert excinfo.value.record_id == "ghost"
    assert isinstance(excinfo.value, StorageError)
    assert collection.find_one_and_update.await_args.kwargs["upsert"] is False


def test_mongo_document_without_seq_is_rejected() -> None:
    collection = MagicMock()
    collection.find_one_and_update = AsyncMock(return_value={"_id": "lead_serial"})
    store, _ = _mongo_store(collection)

    with pytest.raises(StorageError):
        asyncio.run(store.increment_and_get("counters", "lead_serial", 1, True, 1000))


def test_mongo_out_of_range_increment_becomes_storage_error() -> None:
    collection = MagicMock()
    cause = OverflowError("MongoDB can only handle up to 8-byte ints")
    collection.find_one_and_update = AsyncMock(side_effect=cause)
    store, _ = _mongo_store(collection)

    with pytest.raises(StorageError) as excinfo:
        asyncio.run(store.increment_and_get("counters", "lead_serial", 2**64, True, 1000))

    assert excinfo.value.__cause__ is cause


def test_mongo_unencodable_command_becomes_storage_error() -> None:
    collection = MagicMock()
    collection.find_one_and_update = AsyncMock(side_effect=InvalidDocument("cannot encode object"))
    store, _ = _mongo_store(collection)

    with pytest.raises(StorageError):
        asyncio.run(store.increment_and_get("counters", "lead_serial", 1, True, 1000))


def test_mongo_get_value() -> None:
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=[{"_id": "lead_serial", "seq": 1042}, None])
    store, _ = _mongo_store(collection)

    assert asyncio.run(store.get_value("counters", "lead_serial")) == 1042
    assert asyncio.run(store.get_value("counters", "fresh")) is None


def test_mongo_get_value_error() -> None:
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=NetworkTimeout("timed out"))
    store, _ = _mongo_store(collection)

    with pytest.raises(StorageError):
        asyncio.run(store.get_value("counters", "lead_serial"))


def test_memory_store_seeds_initial_value() -> None:
    store = InMemoryCounterStore()

    assert asyncio.run(store.increment_and_get("counters", "a", 1, True, 1000)) == 1001
    assert asyncio.run(store.increment_and_get("counters", "a", 4, True, 0)) == 1005
    assert ("counters", "a") in store.updated_at


def test_memory_store_without_create() -> None:
    store = InMemoryCounterStore()

    with pytest.raises(CounterNotFoundError):
        asyncio.run(store.increment_and_get("counters", "a", 1, False, 1000))
    assert asyncio.run(store.get_value("counters", "a")) is None

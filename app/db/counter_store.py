# app/db/counter_store.py
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from bson.errors import InvalidDocument
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.exceptions import CounterNotFoundError, StorageError

logger = logging.getLogger(__name__)

SEQ_FIELD = "seq"


class CounterStore:
    """
    Persistence collaborator for the sequence allocator.

    Implementations must apply increment and create-if-absent as ONE atomic
    operation on the store side. Never read the counter and write it back.
    """

    async def increment_and_get(
        self,
        collection_key: str,
        record_id: str,
        delta: int,
        create_if_missing: bool,
        initial_value: int,
    ) -> int:
        raise NotImplementedError

    async def get_value(self, collection_key: str, record_id: str) -> Optional[int]:
        raise NotImplementedError


class MongoCounterStore(CounterStore):
    """Counter store backed by a Motor database (MongoDB 4.2+ for pipeline updates)."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database

    async def increment_and_get(
        self,
        collection_key: str,
        record_id: str,
        delta: int,
        create_if_missing: bool,
        initial_value: int,
    ) -> int:
        collection = self.database[collection_key]
        # $inc cannot seed a baseline on insert, so the pipeline form does
        # seq = ifNull(seq, initial_value) + delta in the same round trip.
        update = [
            {
                "$set": {
                    SEQ_FIELD: {"$add": [{"$ifNull": [f"${SEQ_FIELD}", initial_value]}, delta]},
                    "updated_at": "$$NOW",
                }
            }
        ]
        try:
            updated_doc = await collection.find_one_and_update(
                {"_id": record_id},
                update,
                upsert=create_if_missing,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Atomic increment failed for counter '{record_id}' in '{collection_key}': {e}", exc_info=True)
            raise StorageError(f"Database error accessing sequence counter '{record_id}'") from e
        except (OverflowError, InvalidDocument) as e:
            # Raised while encoding the command, before anything is sent
            logger.error(f"Cannot encode increment of {delta} for counter '{record_id}': {e}")
            raise StorageError(f"Increment for sequence counter '{record_id}' is out of range") from e

        if updated_doc is None:
            # Only reachable with upsert disabled
            raise CounterNotFoundError(collection_key, record_id)
        if SEQ_FIELD not in updated_doc:
            logger.error(f"Counter document '{record_id}' has no '{SEQ_FIELD}' field after update: {updated_doc}")
            raise StorageError(f"Malformed sequence counter '{record_id}'")
        return int(updated_doc[SEQ_FIELD])

    async def get_value(self, collection_key: str, record_id: str) -> Optional[int]:
        try:
            doc = await self.database[collection_key].find_one({"_id": record_id}, {SEQ_FIELD: 1})
        except PyMongoError as e:
            logger.error(f"Failed to read counter '{record_id}' in '{collection_key}': {e}", exc_info=True)
            raise StorageError(f"Database error reading sequence counter '{record_id}'") from e
        if not doc or SEQ_FIELD not in doc:
            return None
        return int(doc[SEQ_FIELD])


class InMemoryCounterStore(CounterStore):
    """Process-local counter store for tests and local tooling."""

    def __init__(self):
        self._lock = threading.Lock()
        self._values: Dict[Tuple[str, str], int] = {}
        self.updated_at: Dict[Tuple[str, str], datetime] = {}

    async def increment_and_get(
        self,
        collection_key: str,
        record_id: str,
        delta: int,
        create_if_missing: bool,
        initial_value: int,
    ) -> int:
        key = (collection_key, record_id)
        with self._lock:
            current = self._values.get(key)
            if current is None:
                if not create_if_missing:
                    raise CounterNotFoundError(collection_key, record_id)
                current = initial_value
            new_value = current + delta
            self._values[key] = new_value
            self.updated_at[key] = datetime.now(timezone.utc)
        return new_value

    async def get_value(self, collection_key: str, record_id: str) -> Optional[int]:
        with self._lock:
            return self._values.get((collection_key, record_id))

# app/core/sequence.py
import logging
from typing import Optional

from app.core.exceptions import InvalidArgument
from app.db.counter_store import CounterStore

logger = logging.getLogger(__name__)

DEFAULT_BASELINE = 1000
DEFAULT_COLLECTION = "counters"
# Counters are stored as BSON int64
MAX_BATCH_COUNT = 2**63 - 1


class SequenceAllocator:
    """
    Hands out unique, strictly increasing integers per named counter.

    Every call is a single atomic increment-and-upsert in the store. Values are
    never cached here, so any number of allocators (threads, processes, hosts)
    can share one store. Failures propagate as StorageError and leave the
    counter unchanged; there is no local retry.
    """

    def __init__(self, store: CounterStore, baseline: int = DEFAULT_BASELINE, collection: str = DEFAULT_COLLECTION):
        self.store = store
        self.baseline = baseline
        self.collection = collection

    async def next_value(self, name: str) -> int:
        """Increment counter `name` by one and return the new value (baseline+1 on first use)."""
        value = await self.store.increment_and_get(
            self.collection, name, 1, create_if_missing=True, initial_value=self.baseline
        )
        logger.debug(f"Next sequence value for '{name}': {value}")
        return value

    async def next_batch(self, name: str, count: int) -> int:
        """
        Reserve `count` consecutive values and return the first one.

        The reserved block is [first, first + count - 1].
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise InvalidArgument(f"Batch count must be an integer >= 1, got {count!r}")
        if count > MAX_BATCH_COUNT:
            raise InvalidArgument(f"Batch count must not exceed {MAX_BATCH_COUNT}, got {count}")
        last = await self.store.increment_and_get(
            self.collection, name, count, create_if_missing=True, initial_value=self.baseline
        )
        first = last - count + 1
        logger.debug(f"Reserved sequence block for '{name}': {first}..{last}")
        return first

    async def current_value(self, name: str) -> Optional[int]:
        """Last value issued for `name`, or None if the counter was never used. Read-only."""
        return await self.store.get_value(self.collection, name)


# --- App-wide allocator (wired in app.db.database.init_db) ---
_allocator: Optional[SequenceAllocator] = None


def set_sequence_allocator(allocator: Optional[SequenceAllocator]) -> None:
    global _allocator
    _allocator = allocator


def get_sequence_allocator() -> SequenceAllocator:
    """FastAPI dependency returning the configured allocator."""
    if _allocator is None:
        raise RuntimeError("Sequence allocator is not initialized. Call init_db() first.")
    return _allocator


async def get_next_sequence_value(sequence_name: str) -> int:
    return await get_sequence_allocator().next_value(sequence_name)


async def get_next_sequence_batch(sequence_name: str, count: int) -> int:
    return await get_sequence_allocator().next_batch(sequence_name, count)

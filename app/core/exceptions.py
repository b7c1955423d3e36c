# app/core/exceptions.py


class SequenceError(Exception):
    """Base error for sequence allocation."""


class InvalidArgument(SequenceError, ValueError):
    """Raised when an allocation request is malformed (e.g. batch count < 1)."""


class StorageError(SequenceError):
    """The counter store failed; the counter is left unchanged."""


class CounterNotFoundError(StorageError):
    """Counter does not exist and the caller asked not to create it."""

    def __init__(self, collection_key: str, record_id: str):
        self.collection_key = collection_key
        self.record_id = record_id
        super().__init__(f"Counter '{record_id}' not found in '{collection_key}'")

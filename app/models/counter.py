# app/models/counter.py
from datetime import datetime
from typing import Optional

from beanie import Document
from pydantic import BaseModel


class SequenceCounter(Document):
    """Last issued value for a named sequence. `_id` is the sequence name."""
    id: str
    seq: int = 0 # Last value handed out (baseline until first increment)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "counters"
        # Only ever mutated through find_one_and_update, never .save()
        use_state_management = False

    class Response(BaseModel):
        name: str
        current_value: Optional[int] = None

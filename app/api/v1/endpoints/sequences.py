# app/api/v1/endpoints/sequences.py
import logging
from fastapi import APIRouter, Depends, Path

from app.core.sequence import SequenceAllocator, get_sequence_allocator
from app.models.counter import SequenceCounter

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Sequences"]
)

@router.get(
    "/{name}",
    response_model=SequenceCounter.Response,
    summary="Peek at the last issued value of a counter"
)
async def read_sequence(
    name: str = Path(..., min_length=1, max_length=100),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    """Read-only. `current_value` is null for a counter that has never been used."""
    return SequenceCounter.Response(name=name, current_value=await allocator.current_value(name))

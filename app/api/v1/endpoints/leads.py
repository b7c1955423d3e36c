# app/api/v1/endpoints/leads.py
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Request, Response
from pydantic import ValidationError

from app.core.config import LEAD_CREATE_RATE_LIMIT
from app.core.lead_serials import create_lead, import_leads, backfill_serial_numbers
from app.core.rate_limiter import limiter
from app.core.sequence import SequenceAllocator, get_sequence_allocator
from app.models.lead import Lead, LeadImportRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Leads"]
)

def validate_lead_response(lead_doc: Lead) -> Lead.Response:
    """Convert a Lead document into Lead.Response (ObjectId -> str)."""
    lead_data = lead_doc.model_dump(by_alias=False)
    lead_data['id'] = str(lead_doc.id)
    try:
        return Lead.Response.model_validate(lead_data)
    except ValidationError as ve:
        logger.error(f"Pydantic validation failed for lead {lead_data['id']}: {ve}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error preparing lead data for response.") from ve


# --- POST /leads/ ---
@router.post(
    "/",
    response_model=Lead.Response,
    status_code=status.HTTP_201_CREATED,
    summary="Create Lead (assigns the next serial number)"
)
@limiter.limit(LEAD_CREATE_RATE_LIMIT)
async def create_lead_endpoint(
    request: Request, # Required by the limiter
    lead_in: Lead.Create = Body(...),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    # StorageError from the allocator is turned into a generic 500 by the app handler
    lead = await create_lead(lead_in, allocator)
    return validate_lead_response(lead)


# --- POST /leads/import ---
@router.post(
    "/import",
    response_model=Lead.ImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Bulk import leads with one contiguous block of serials"
)
@limiter.limit("10/minute")
async def import_leads_endpoint(
    request: Request,
    response: Response,
    payload: LeadImportRequest = Body(...),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    result = await import_leads(payload.leads, allocator)
    if result.failed_rows:
        # Some rows landed, some did not
        response.status_code = status.HTTP_207_MULTI_STATUS
    return Lead.ImportResponse(
        imported=len(result.inserted),
        failed_rows=result.failed_rows,
        first_serial=result.first_serial,
        last_serial=result.last_serial,
    )


# --- POST /leads/backfill-serials ---
@router.post(
    "/backfill-serials",
    summary="Assign serial numbers to leads that have none"
)
async def backfill_serials_endpoint(
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    result = await backfill_serial_numbers(allocator)
    return result._asdict()


# --- GET /leads/serial/{serial_number} ---
@router.get(
    "/serial/{serial_number}",
    response_model=Lead.Response,
    summary="Get Lead by Serial Number"
)
async def read_lead_by_serial(
    serial_number: int = Path(..., ge=1, description="Lead serial number"),
):
    lead = await Lead.find_one({"serial_number": serial_number, "deleted_at": None})
    if not lead:
        logger.info(f"Lead lookup failed for serial {serial_number}.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Lead with serial {serial_number} not found.")
    return validate_lead_response(lead)

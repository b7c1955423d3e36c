# app/models/lead.py
from typing import Optional, List
from beanie import Document
from pydantic import BaseModel, ConfigDict, Field, EmailStr
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import LeadStatus

class Lead(Document):
    """Beanie document for a CRM lead. `serial_number` comes from the lead_serial counter."""
    name: str = Field(..., max_length=200)
    company: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    country_code: Optional[str] = None
    status: LeadStatus = Field(default=LeadStatus.NEW)
    source: Optional[str] = None
    value: Optional[float] = Field(None, ge=0)
    currency: str = "AED"
    tags: List[str] = Field(default_factory=list)

    serial_number: Optional[int] = None # Legacy leads may not have one yet (see backfill)

    # --- Timestamps ---
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    deleted_at: Optional[datetime] = None # Soft delete

    class Settings:
        name = "leads"
        indexes = [
            IndexModel([("name", ASCENDING)], name="lead_name_index"),
            IndexModel([("email", ASCENDING)], name="lead_email_index", sparse=True),
            IndexModel([("phone", ASCENDING)], name="lead_phone_index", sparse=True),
            IndexModel([("status", ASCENDING)], name="lead_status_index"),
            # Partial instead of sparse: explicit nulls must not collide
            IndexModel(
                [("serial_number", ASCENDING)],
                name="lead_serial_unique_index",
                unique=True,
                partialFilterExpression={"serial_number": {"$type": "number"}},
            ),
            IndexModel([("created_at", DESCENDING)], name="lead_created_at_index"),
            IndexModel([("deleted_at", ASCENDING)], name="lead_deleted_at_index"),
        ]

    # --- Pydantic Schemas for API ---
    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=200)
        company: Optional[str] = None
        email: Optional[EmailStr] = None
        phone: Optional[str] = Field(None, max_length=30)
        country_code: Optional[str] = Field(None, max_length=5)
        status: LeadStatus = LeadStatus.NEW
        source: Optional[str] = None
        value: Optional[float] = Field(None, ge=0)
        currency: str = "AED"
        tags: List[str] = Field(default_factory=list)
        # serial_number is never client-supplied

    class ImportResponse(BaseModel):
        imported: int
        failed_rows: List[int] = [] # Input indexes rejected by the database
        first_serial: Optional[int] = None # Reserved block; serials of failed rows are burned
        last_serial: Optional[int] = None

    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        name: str
        company: Optional[str] = None
        email: Optional[EmailStr] = None
        phone: Optional[str] = None
        country_code: Optional[str] = None
        status: LeadStatus
        source: Optional[str] = None
        value: Optional[float] = None
        currency: str
        tags: List[str] = []
        serial_number: Optional[int] = None
        created_at: datetime
        updated_at: datetime

        model_config = ConfigDict(from_attributes=True, populate_by_name=True, arbitrary_types_allowed=True)


# Defined at module level so it can point at the nested Create schema
class LeadImportRequest(BaseModel):
    leads: List[Lead.Create] = Field(..., min_length=1, max_length=1000)

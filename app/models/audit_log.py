# app/models/audit_log.py
from typing import Optional, List
from beanie import Document
from pydantic import BaseModel, ConfigDict, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import AuditAction, EntityType

class AuditLog(Document):
    action: AuditAction
    entity_type: EntityType
    entity_id: Optional[str] = None
    user_name: str = "system"
    details: str
    created_at: datetime = Field(default_factory=datetime.now)

    class Settings:
        name = "audit_logs"
        indexes = [
            IndexModel([("created_at", DESCENDING)], name="audit_created_at_index"),
            IndexModel([("entity_type", ASCENDING), ("action", ASCENDING)], name="audit_entity_action_index"),
        ]

    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        action: AuditAction
        entity_type: EntityType
        entity_id: Optional[str] = None
        user_name: str
        details: str
        created_at: datetime

        model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class AuditLogPage(BaseModel):
    items: List[AuditLog.Response]
    total: int
    page: int
    limit: int

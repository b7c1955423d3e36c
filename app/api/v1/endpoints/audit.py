# app/api/v1/endpoints/audit.py
from typing import Optional
from fastapi import APIRouter, Query
import logging

from app.core.audit import get_audit_logs
from app.models.audit_log import AuditLog, AuditLogPage
from app.models.enum import AuditAction, EntityType

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Audit"]
)

@router.get(
    "/",
    response_model=AuditLogPage,
    summary="List audit entries, newest first"
)
async def read_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[AuditAction] = None,
    entity_type: Optional[EntityType] = None,
):
    docs, total = await get_audit_logs(page=page, limit=limit, action=action, entity_type=entity_type)
    items = []
    for doc in docs:
        data = doc.model_dump(by_alias=False)
        data['id'] = str(doc.id)
        items.append(AuditLog.Response.model_validate(data))
    return AuditLogPage(items=items, total=total, page=page, limit=limit)

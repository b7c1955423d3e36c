# app/core/audit.py
import logging
from typing import List, Optional, Tuple

from pymongo import DESCENDING

from app.models.audit_log import AuditLog
from app.models.enum import AuditAction, EntityType

logger = logging.getLogger(__name__)


async def log_audit(
    action: AuditAction,
    entity_type: EntityType,
    entity_id: Optional[str],
    details: str,
    user_name: str = "system",
) -> None:
    """Record an audit entry. A failed insert is logged but never breaks the caller's flow."""
    try:
        await AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_name=user_name,
            details=details,
        ).insert()
    except Exception as e:
        logger.error(f"Audit log insert failed ({action.value} {entity_type.value} {entity_id}): {e}", exc_info=True)


async def get_audit_logs(
    page: int = 1,
    limit: int = 50,
    action: Optional[AuditAction] = None,
    entity_type: Optional[EntityType] = None,
) -> Tuple[List[AuditLog], int]:
    """Newest-first page of audit entries plus the total matching count."""
    query = {}
    if action: query["action"] = action.value
    if entity_type: query["entity_type"] = entity_type.value

    skip = (max(page, 1) - 1) * limit
    items = await AuditLog.find(query, skip=skip, limit=limit, sort=[("created_at", DESCENDING)]).to_list()
    total = await AuditLog.find(query).count()
    return items, total

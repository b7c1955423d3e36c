from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

from app.models.audit_log import AuditLog
from app.models.enum import AuditAction, EntityType, LeadStatus
from app.models.lead import Lead


def _lead_data(**overrides) -> dict:
    now = datetime(2024, 5, 1, 9, 30)
    data = {
        "name": "Aisha",
        "status": LeadStatus.NEW,
        "currency": "AED",
        "serial_number": 1001,
        "created_at": now,
        "updated_at": now,
    }
    data.update(overrides)
    return data


def test_lead_response_accepts_id_by_name_or_alias() -> None:
    by_alias = Lead.Response.model_validate(_lead_data(_id="abc"))
    by_name = Lead.Response.model_validate(_lead_data(id="abc"))

    assert by_alias.id == by_name.id == "abc"
    assert by_name.serial_number == 1001


def test_lead_response_reads_attributes() -> None:
    response = Lead.Response.model_validate(SimpleNamespace(id="abc", **_lead_data()))

    assert response.id == "abc"
    assert Lead.Response.model_config["from_attributes"] is True


def test_import_response_defaults_to_no_failures() -> None:
    response = Lead.ImportResponse(imported=0)

    assert response.model_dump() == {"imported": 0, "failed_rows": [], "first_serial": None, "last_serial": None}


def test_audit_log_response_reads_attributes() -> None:
    entry = SimpleNamespace(
        id="log-1",
        action=AuditAction.BULK_UPDATE,
        entity_type=EntityType.LEAD,
        entity_id=None,
        user_name="system",
        details="Serial backfill.",
        created_at=datetime(2024, 5, 1),
    )

    response = AuditLog.Response.model_validate(entry)

    assert (response.id, response.action) == ("log-1", AuditAction.BULK_UPDATE)
    assert AuditLog.Response.model_config["populate_by_name"] is True

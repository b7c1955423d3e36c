# app/core/lead_serials.py
"""
Lead workflows that consume serial numbers from the sequence allocator.

Serials are taken BEFORE the lead is written. If the insert then fails the
reserved numbers are simply skipped; they are never handed out again.
"""
import logging
from typing import List, NamedTuple, Optional, Sequence

from pymongo import ASCENDING, UpdateOne
from pymongo.errors import BulkWriteError

from app.core.audit import log_audit
from app.core.config import DEFAULT_COUNTRY_CODE, LEAD_SERIAL_SEQUENCE
from app.core.sequence import SequenceAllocator
from app.models.enum import AuditAction, EntityType
from app.models.lead import Lead

logger = logging.getLogger(__name__)


class ImportResult(NamedTuple):
    inserted: List[Lead]
    failed_rows: List[int] # Input indexes that were not written; their serials are burned
    first_serial: Optional[int] = None
    last_serial: Optional[int] = None


class BackfillResult(NamedTuple):
    assigned: int
    skipped: int = 0 # Reserved serials that went to no lead (lost a concurrent race)
    first_serial: Optional[int] = None # Reserved block, not necessarily all applied
    last_serial: Optional[int] = None


def _to_document(row: Lead.Create, serial_number: int) -> Lead:
    data = row.model_dump()
    if not data.get("country_code"):
        data["country_code"] = DEFAULT_COUNTRY_CODE
    return Lead(**data, serial_number=serial_number)


async def create_lead(
    lead_in: Lead.Create,
    allocator: SequenceAllocator,
    user_name: str = "system",
    sequence_name: str = LEAD_SERIAL_SEQUENCE,
) -> Lead:
    serial = await allocator.next_value(sequence_name)
    lead = _to_document(lead_in, serial)
    try:
        await lead.insert()
    except Exception:
        logger.error(f"Failed to insert lead '{lead_in.name}' with serial {serial}; serial is skipped.", exc_info=True)
        raise
    logger.info(f"Lead '{lead.name}' created with serial {serial} by '{user_name}'.")
    await log_audit(
        AuditAction.CREATE, EntityType.LEAD, str(lead.id),
        f"Created lead: {lead.name} (#{serial})", user_name=user_name,
    )
    return lead


async def import_leads(
    rows: Sequence[Lead.Create],
    allocator: SequenceAllocator,
    user_name: str = "system",
    sequence_name: str = LEAD_SERIAL_SEQUENCE,
) -> ImportResult:
    """
    Insert `rows` with one contiguous block of serials, assigned in input order.

    The insert is unordered: a row rejected by the database (e.g. duplicate
    key) does not stop the others. Rejected rows are reported in
    `failed_rows` and the rows that did land are audited either way.
    """
    if not rows:
        return ImportResult(inserted=[], failed_rows=[])

    first = await allocator.next_batch(sequence_name, len(rows))
    last = first + len(rows) - 1
    docs = [_to_document(row, first + idx) for idx, row in enumerate(rows)]
    failed_rows: List[int] = []
    try:
        await Lead.insert_many(docs, ordered=False)
    except BulkWriteError as e:
        failed_rows = sorted({err["index"] for err in e.details.get("writeErrors", [])})
        logger.warning(
            f"Bulk insert wrote {len(docs) - len(failed_rows)} of {len(docs)} leads; "
            f"rows {failed_rows} rejected: {e.details.get('writeErrors', [])[:3]}"
        )
    except Exception:
        # Connection-level failure: how much landed is unknown, the whole block is treated as burned
        logger.error(f"Bulk insert of {len(docs)} leads failed; serials {first}-{last} are skipped.", exc_info=True)
        raise

    failed = set(failed_rows)
    inserted = [doc for idx, doc in enumerate(docs) if idx not in failed]
    details = f"Imported {len(inserted)} leads (serials {first}-{last})"
    if failed_rows:
        details += f", {len(failed_rows)} rows rejected: {failed_rows}"
    logger.info(details)
    if inserted:
        await log_audit(AuditAction.IMPORT, EntityType.LEAD, None, details, user_name=user_name)
    return ImportResult(inserted=inserted, failed_rows=failed_rows, first_serial=first, last_serial=last)


async def backfill_serial_numbers(
    allocator: SequenceAllocator,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
    sequence_name: str = LEAD_SERIAL_SEQUENCE,
) -> BackfillResult:
    """
    Give every lead without a serial one, oldest lead first.

    Missing country codes are filled with `default_country_code` on the way.
    A lead that got a serial concurrently keeps it; the number reserved for
    it here is counted in `skipped`.
    """
    collection = Lead.get_motor_collection()
    pending = await collection.find(
        {"serial_number": None}, {"_id": 1, "country_code": 1}
    ).sort("created_at", ASCENDING).to_list(length=None)

    logger.info(f"Found {len(pending)} leads without serial numbers.")
    if not pending:
        return BackfillResult(assigned=0)

    first = await allocator.next_batch(sequence_name, len(pending))
    last = first + len(pending) - 1
    ops = []
    for idx, doc in enumerate(pending):
        update = {"serial_number": first + idx}
        if not doc.get("country_code"):
            update["country_code"] = default_country_code
        # Guard on serial_number so a concurrent backfill never overwrites
        ops.append(UpdateOne({"_id": doc["_id"], "serial_number": None}, {"$set": update}))

    result = await collection.bulk_write(ops, ordered=False)
    assigned = result.modified_count
    skipped = len(pending) - assigned
    details = f"Reserved serials {first}-{last}: assigned {assigned}, skipped {skipped}"
    if skipped:
        logger.warning(f"{details} (leads numbered concurrently).")
    else:
        logger.info(details)

    await log_audit(AuditAction.BULK_UPDATE, EntityType.LEAD, None, f"Serial backfill. {details}")
    return BackfillResult(assigned=assigned, skipped=skipped, first_serial=first, last_serial=last)

# app/scheduler/jobs.py
import logging
from datetime import datetime, timezone

from app.core.exceptions import StorageError
from app.core.lead_serials import backfill_serial_numbers
from app.core.sequence import get_sequence_allocator

logger = logging.getLogger("scheduler_jobs")

async def backfill_missing_serials():
    """Periodic job: give serial numbers to leads created without one (imports, webhooks, legacy data)."""
    now_utc = datetime.now(timezone.utc)
    logger.info(f"Running backfill_missing_serials job at {now_utc}")
    try:
        result = await backfill_serial_numbers(get_sequence_allocator())
    except StorageError:
        # Counter untouched; the next run picks the same leads up again
        logger.error("Serial backfill job could not reserve serial numbers.", exc_info=True)
        return
    if result.first_serial is not None:
        logger.info(
            f"Job finished. Assigned {result.assigned} serials from block "
            f"{result.first_serial}-{result.last_serial} ({result.skipped} skipped)."
        )
    else:
        logger.info("Job finished. No leads without serial numbers.")

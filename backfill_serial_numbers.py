# backfill_serial_numbers.py
"""
Backfill serial numbers for existing leads.

Run from the project root:  python backfill_serial_numbers.py

Finds every lead without a serial_number (oldest first), reserves one block of
serials from the lead_serial counter and assigns them in order. Leads without
a country code get DEFAULT_COUNTRY_CODE.
"""
import asyncio
import sys

from app.core.config import DATABASE_NAME, DEFAULT_COUNTRY_CODE, setup_logging
from app.core.exceptions import StorageError
from app.core.lead_serials import backfill_serial_numbers
from app.core.sequence import get_sequence_allocator
from app.db.database import init_db


async def run_backfill() -> int:
    print("--- Backfill Lead Serial Numbers ---")
    client = await init_db()
    print(f"Connected to database: {DATABASE_NAME}")
    try:
        result = await backfill_serial_numbers(
            get_sequence_allocator(), default_country_code=DEFAULT_COUNTRY_CODE
        )
    except StorageError as e:
        print(f"Error: could not reserve serial numbers: {e}")
        return 1
    finally:
        client.close()
        print("Database connection closed.")

    if result.first_serial is None:
        print("Nothing to backfill. All leads have serial numbers.")
        return 0
    print(f"Reserved serial numbers {result.first_serial}-{result.last_serial}")
    print(f"Assigned {result.assigned}, skipped {result.skipped}")
    if result.skipped:
        print("Skipped serials went to leads that were numbered by another run; they are not reused.")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_backfill()))

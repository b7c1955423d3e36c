# app/db/database.py
import motor.motor_asyncio
from beanie import init_beanie
from app.core.config import MONGODB_URL, DATABASE_NAME, SEQUENCE_BASELINE
from app.core.sequence import SequenceAllocator, set_sequence_allocator
from app.db.counter_store import MongoCounterStore
from app.models.audit_log import AuditLog
from app.models.counter import SequenceCounter
from app.models.lead import Lead
import logging

logger = logging.getLogger(__name__)

async def init_db() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Connect to MongoDB, initialize Beanie and wire the app-wide sequence allocator."""
    logger.info("Connecting to MongoDB...")
    client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL)

    database = client[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")

    await init_beanie(
        database=database,
        document_models=[
            Lead,
            AuditLog,
            SequenceCounter
        ]
    )
    logger.info("Beanie initialization complete for all models.")

    set_sequence_allocator(
        SequenceAllocator(
            MongoCounterStore(database),
            baseline=SEQUENCE_BASELINE,
            collection=SequenceCounter.Settings.name,
        )
    )
    logger.info(f"Sequence allocator ready (collection '{SequenceCounter.Settings.name}', baseline {SEQUENCE_BASELINE}).")
    return client

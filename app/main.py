# app/main.py
import logging
from fastapi import FastAPI, Request, status as fastapi_status, HTTPException
from pymongo.errors import PyMongoError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

# Middleware & configuration
from app.core.config import setup_logging, BACKFILL_INTERVAL_MINUTES, SCHEDULER_TIMEZONE
from fastapi.middleware.gzip import GZipMiddleware
from app.middleware.logging import RequestLoggingMiddleware
from app.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from slowapi.errors import RateLimitExceeded

# Application components
from app.core.exceptions import InvalidArgument, StorageError
from app.core.sequence import set_sequence_allocator
from app.db.database import init_db
from app.api.v1.api import api_router_v1
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.scheduler.jobs import backfill_missing_serials

setup_logging()
logger = logging.getLogger(__name__)

#  --- Scheduler Instance ---
scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    app.state.mongo_client = await init_db()
    logger.info("Database initialized.")

    if BACKFILL_INTERVAL_MINUTES > 0:
        scheduler.add_job(
            backfill_missing_serials,
            trigger=IntervalTrigger(minutes=BACKFILL_INTERVAL_MINUTES),
            id="backfill_serials_job",
            name="Backfill Lead Serial Numbers",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=60 * BACKFILL_INTERVAL_MINUTES
        )
        scheduler.start()
        logger.info(f"Scheduler started with timezone: {scheduler.timezone}, backfill every {BACKFILL_INTERVAL_MINUTES} min")
    else:
        logger.info("Serial backfill job disabled (BACKFILL_INTERVAL_MINUTES=0).")
    yield
    logger.info("Application shutdown...")
    if scheduler.running: scheduler.shutdown()
    set_sequence_allocator(None)
    app.state.mongo_client.close()

app = FastAPI(
    title="Leads CRM API",
    description="Lead serial numbers backed by an atomic MongoDB sequence counter.",
    lifespan=lifespan
)
# --- MIDDLEWARE & ERROR HANDLING ---

# 1. Error Handling
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    logger.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation Error", "errors": jsonable_encoder(exc.errors())},
    )
@app.exception_handler(InvalidArgument)
async def invalid_argument_handler(request: Request, exc: InvalidArgument):
    logger.warning(f"Invalid argument: {exc}")
    return JSONResponse(status_code=fastapi_status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})
@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    # Surfaced as a generic save error; details stay in the logs
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "An internal server error occurred."})
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {exc}", exc_info=exc)
    return JSONResponse(status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "An internal server error occurred."})

# 2. Request Logging Middleware
app.add_middleware(RequestLoggingMiddleware)

# 3. Rate Limiter State (for @limiter.limit)
app.state.limiter = get_rate_limiter()

# 4. GZip Middleware
app.add_middleware(GZipMiddleware, minimum_size=500)

# --- END MIDDLEWARE ---

app.include_router(api_router_v1)

@app.get("/")
async def read_root():
    return {"message": "Welcome to the Leads CRM API!"}

@app.get("/ping-mongodb")
async def ping_mongodb(request: Request):
    client = getattr(request.app.state, "mongo_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="MongoDB client not initialized.")
    try:
        await client.admin.command('ping')
        return {"status": "success", "message": "MongoDB connection is healthy."}
    except PyMongoError:
        raise HTTPException(status_code=503, detail="MongoDB connection failed.")

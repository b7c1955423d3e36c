# app/core/config.py
import os
import sys
from dotenv import load_dotenv
from loguru import logger
import logging
from pathlib import Path

project_root = Path(__file__).resolve().parent.parent.parent
dotenv_path = project_root / '.env'

# --- Load .env IF present ---
if dotenv_path.is_file():
    logger.info(f"Loading environment variables from: {dotenv_path}")
    load_dotenv(dotenv_path=dotenv_path, override=True)
else:
    logger.warning(f".env file not found at {dotenv_path}. Relying on system environment variables.")

# --- Intercept Handler (routes stdlib logging into Loguru) ---
class InterceptHandler(logging.Handler):
    """Handler that forwards standard logging records to Loguru."""
    def emit(self, record: logging.LogRecord) -> None:
        try: level = logger.level(record.levelname).name
        except ValueError: level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

# --- Logging setup ---
def setup_logging():
    """Configure Loguru for the application."""
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelName(log_level_name)

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    log_file_path = Path(os.getenv("LOG_FILE_PATH", "logs/app_{time:YYYY-MM-DD}.log"))
    log_rotation = os.getenv("LOG_ROTATION", "1 day")
    log_retention = os.getenv("LOG_RETENTION", "7 days")
    log_serialize = os.getenv("LOG_SERIALIZE", "False").lower() == 'true'

    logger.remove() # Drop the default handler

    # Console
    logger.add(
        sys.stderr,
        level=log_level,
        format=log_format,
        colorize=True,
    )

    # File
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file_path,
            level=log_level,
            format=log_format,
            rotation=log_rotation,
            retention=log_retention,
            serialize=log_serialize,
            enqueue=True,
            backtrace=True,
            diagnose=True,
            encoding="utf-8"
        )
        logger.info(f"File logging enabled at: {log_file_path}")
    except OSError as e:
        logger.error(f"Failed to setup file logging at {log_file_path}: {e}")

    # --- Intercept standard logging ---
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("uvicorn.", "fastapi.", "starlette.", "apscheduler.")) or name == "uvicorn.access":
            existing_logger = logging.getLogger(name)
            existing_logger.handlers = [InterceptHandler()]
            existing_logger.propagate = False # Avoid duplicates via the root logger
    logger.info("Standard library logging intercepted.")
    logger.info(f"Logging level set to: {log_level_name} ({log_level})")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}. Using default: {default}.")
        return default


# --- Database Configuration ---
_default_mongodb_url = "mongodb://localhost:27017/leads_crm"
MONGODB_URL: str = os.getenv("MONGODB_URL") or ""
if not MONGODB_URL:
    logger.warning(f"MONGODB_URL is not set. Falling back to {_default_mongodb_url}")
    MONGODB_URL = _default_mongodb_url

# Database name from the URL path, unless overridden
_default_db_name = "leads_crm"
_path_part = MONGODB_URL.split("://", 1)[-1].partition('/')[2].split('?')[0]
if _path_part: _default_db_name = _path_part
DATABASE_NAME: str = os.getenv("DATABASE_NAME", _default_db_name)

# --- Sequence Configuration ---
# First value issued by a fresh counter is SEQUENCE_BASELINE + 1
SEQUENCE_BASELINE: int = _int_env("SEQUENCE_BASELINE", 1000)
LEAD_SERIAL_SEQUENCE: str = os.getenv("LEAD_SERIAL_SEQUENCE", "lead_serial")
DEFAULT_COUNTRY_CODE: str = os.getenv("DEFAULT_COUNTRY_CODE", "971")

# --- Scheduler ---
BACKFILL_INTERVAL_MINUTES: int = max(0, _int_env("BACKFILL_INTERVAL_MINUTES", 0)) # 0 = disabled
SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")

# --- Rate limits ---
LEAD_CREATE_RATE_LIMIT: str = os.getenv("LEAD_CREATE_RATE_LIMIT", "60/minute")

logger.info(f"Database Name: {DATABASE_NAME}")
logger.info(f"Sequence baseline: {SEQUENCE_BASELINE}, lead serial counter: '{LEAD_SERIAL_SEQUENCE}'")

import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"
LOG_FORMAT = os.getenv("LOG_FORMAT")

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = os.getenv("DB_SCHEMA", "stays")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Calendar feeds
FEED_FETCH_TIMEOUT = float(os.getenv("FEED_FETCH_TIMEOUT", "15"))
FEED_SYNC_CONCURRENCY = int(os.getenv("FEED_SYNC_CONCURRENCY", "4"))
FACT_LOOKBACK_DAYS = int(os.getenv("FACT_LOOKBACK_DAYS", "30"))
DIAGNOSTIC_SNIPPET_LENGTH = int(os.getenv("DIAGNOSTIC_SNIPPET_LENGTH", "500"))

# Batch enrichment candidate window, relative to today
ENRICHMENT_PAST_DAYS = int(os.getenv("ENRICHMENT_PAST_DAYS", "60"))
ENRICHMENT_FUTURE_DAYS = int(os.getenv("ENRICHMENT_FUTURE_DAYS", "365"))

# Mailbox ingestion
MAILBOX_MAX_PAGES = int(os.getenv("MAILBOX_MAX_PAGES", "10"))
MAILBOX_PAGE_SIZE = int(os.getenv("MAILBOX_PAGE_SIZE", "100"))
MAILBOX_CONCURRENCY = int(os.getenv("MAILBOX_CONCURRENCY", "4"))
MAILBOX_MAX_RETRIES = int(os.getenv("MAILBOX_MAX_RETRIES", "3"))
MAILBOX_BACKOFF_SECONDS = float(os.getenv("MAILBOX_BACKOFF_SECONDS", "1.0"))
# Directory of per-connection Gmail authorized-user tokens (<connection id>.json)
MAILBOX_TOKEN_DIR = os.getenv("MAILBOX_TOKEN_DIR")

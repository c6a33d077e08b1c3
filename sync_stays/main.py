# sync_stays/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sync_stays.config import ALLOWED_ORIGINS
from sync_stays.logging_config import setup_logging
from sync_stays.middleware import RequestIDMiddleware
from sync_stays.routes.bookings import router as bookings_router
from sync_stays.routes.calendar import router as calendar_router
from sync_stays.routes.connections import router as connections_router
from sync_stays.routes.feeds import router as feeds_router
from sync_stays.routes.health import router as health_router
from sync_stays.routes.metrics import router as metrics_router
from sync_stays.routes.review_items import router as review_items_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Stays Sync API",
    description="Calendar feed sync, reservation enrichment and reconciled calendar queries",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(calendar_router, tags=["Calendar"])
app.include_router(bookings_router, tags=["Bookings"])
app.include_router(feeds_router, tags=["Feeds"])
app.include_router(connections_router, tags=["Connections"])
app.include_router(review_items_router, tags=["Review"])


@app.on_event("startup")
def startup_event() -> None:
    """Initialize application on startup."""
    logger.info("fastapi_application_started", allowed_origins=ALLOWED_ORIGINS)

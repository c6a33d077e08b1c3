import structlog

from sync_stays.config import DRY_RUN
from sync_stays.db.engine import engine
from sync_stays.logging_config import setup_logging
from sync_stays.network.mailbox import gmail_source_for
from sync_stays.services.sync import refresh_all

# Setup logging
setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    # Scheduled refresh: every active feed, then ingest and enrichment for workspaces that changed.
    # Connections without a stored token are enriched from facts already stored.
    summary = refresh_all(engine, source_factory=gmail_source_for, dry_run=DRY_RUN)
    logger.info(
        "scheduled_refresh_finished",
        feeds=len(summary.feeds),
        failed_feeds=sum(1 for r in summary.feeds if not r.success),
        bookings_changed=summary.bookings_changed,
        connections=len(summary.connections),
    )


if __name__ == "__main__":
    main()

import argparse

import structlog

from sync_stays.db.engine import engine
from sync_stays.logging_config import setup_logging
from sync_stays.services.feed_sync import sync_feed

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Sync a single calendar feed and print its counters.
    """
    parser = argparse.ArgumentParser(description="Sync one calendar feed")
    parser.add_argument("feed_id", type=int)
    parser.add_argument("--dry-run", action="store_true", help="Fetch and match without writing")
    args = parser.parse_args()

    logger.info("manual_feed_sync_started", feed_id=args.feed_id, dry_run=args.dry_run)

    try:
        result = sync_feed(engine, args.feed_id, dry_run=args.dry_run)
    except Exception:
        logger.exception("manual_feed_sync_failed", feed_id=args.feed_id)
        raise

    print(
        f"feed={result.feed_id} success={result.success} events={result.events_seen} "
        f"inserted={result.inserted} updated={result.updated} unchanged={result.unchanged} "
        f"deactivated={result.deactivated} enriched={result.enriched} "
        f"ambiguous={result.ambiguous} error={result.error}"
    )


if __name__ == "__main__":
    main()

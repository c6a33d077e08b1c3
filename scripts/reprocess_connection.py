import argparse

import structlog

from sync_stays.db.engine import engine
from sync_stays.logging_config import setup_logging
from sync_stays.services.fact_store import reprocess_connection

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Re-parse every stored message of a mailbox connection, then re-run enrichment.

    Run after classifier or extractor rules change.
    """
    parser = argparse.ArgumentParser(description="Reprocess stored mailbox messages")
    parser.add_argument("connection_id", type=int)
    parser.add_argument("--dry-run", action="store_true", help="Parse without writing")
    args = parser.parse_args()

    try:
        summary = reprocess_connection(engine, args.connection_id, dry_run=args.dry_run)
    except Exception:
        logger.exception("manual_reprocess_failed", connection_id=args.connection_id)
        raise

    stats = summary.stats
    print(
        f"connection={summary.connection_id} scanned={stats.scanned} "
        f"candidates={stats.candidates} created={stats.facts_created} "
        f"updated={stats.facts_updated} rejected={dict(stats.rejected)}"
    )
    if summary.enrichment:
        e = summary.enrichment
        print(
            f"matched={e.matched} names_updated={e.names_updated} ambiguous={e.ambiguous} "
            f"review_items={e.review_items_created}"
        )


if __name__ == "__main__":
    main()

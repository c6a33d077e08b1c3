import argparse

import structlog

from sync_stays.db.engine import engine
from sync_stays.db.readers.connections import get_connection
from sync_stays.logging_config import setup_logging
from sync_stays.network.mailbox import gmail_source_for
from sync_stays.services.sync import sync_connection

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Scan a mailbox connection's reservation label, store new facts and enrich bookings.

    Uses the connection's stored OAuth token from MAILBOX_TOKEN_DIR.
    """
    parser = argparse.ArgumentParser(description="Scan one mailbox connection")
    parser.add_argument("connection_id", type=int)
    parser.add_argument("--token-dir", help="Overrides MAILBOX_TOKEN_DIR")
    parser.add_argument("--dry-run", action="store_true", help="Scan without writing")
    args = parser.parse_args()

    with engine.connect() as conn:
        connection = get_connection(conn, args.connection_id)
    if connection is None:
        parser.error(f"connection {args.connection_id} not found")

    source = gmail_source_for(connection, token_dir=args.token_dir)
    if source is None:
        parser.error(f"no stored mailbox token for connection {args.connection_id}")

    try:
        result = sync_connection(engine, args.connection_id, source, dry_run=args.dry_run)
    except Exception:
        logger.exception("manual_scan_failed", connection_id=args.connection_id)
        raise

    stats = result.stats
    print(
        f"connection={result.connection_id} scanned={result.emails_scanned} "
        f"facts_created={stats.facts_created if stats else 0}"
    )
    if result.enrichment:
        e = result.enrichment
        print(
            f"matched={e.matched} names_updated={e.names_updated} ambiguous={e.ambiguous} "
            f"review_items={e.review_items_created}"
        )


if __name__ == "__main__":
    main()

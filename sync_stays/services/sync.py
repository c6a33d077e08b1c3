"""Scheduled refresh orchestrator: feeds first, then mailbox connections of changed workspaces."""

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.engine import Engine

from sync_stays.db.readers.connections import get_active_connections, get_connection
from sync_stays.db.writers.messages import insert_mailbox_sync_log
from sync_stays.network.mailbox import MailboxSource
from sync_stays.pollers.mailbox import ingest_label
from sync_stays.services.enrichment import EnrichmentSummary, enrich_connection
from sync_stays.services.fact_store import StoreStats, store_messages
from sync_stays.services.feed_sync import FeedSyncResult, sync_all_feeds

logger = structlog.get_logger(__name__)

SourceFactory = Callable[[Any], Optional[MailboxSource]]


@dataclass
class ConnectionSyncResult:
    connection_id: int
    success: bool = False
    emails_scanned: int = 0
    stats: Optional[StoreStats] = None
    enrichment: Optional[EnrichmentSummary] = None
    error: Optional[str] = None


@dataclass
class RefreshSummary:
    feeds: list[FeedSyncResult] = field(default_factory=list)
    connections: list[ConnectionSyncResult] = field(default_factory=list)

    @property
    def bookings_changed(self) -> int:
        return sum(r.changed for r in self.feeds)


def sync_connection(
    engine: Engine,
    connection_id: int,
    source: Optional[MailboxSource] = None,
    dry_run: bool = False,
    today: Optional[date] = None,
) -> ConnectionSyncResult:
    """
    Run ingest -> store -> enrich for one mailbox connection.

    Without a mailbox source only the enrichment pass runs, over facts already
    stored. A mailbox_sync_logs row records every run, failed or not.

    Args:
        engine (Engine): SQLAlchemy engine.
        connection_id (int): Mailbox connection id.
        source (Optional[MailboxSource]): Mailbox collaborator for the connection.
        dry_run (bool): If True, skip DB writes.
        today (Optional[date]): Reference day for extraction and the enrichment window.

    Returns:
        ConnectionSyncResult: Counters for the run.

    Raises:
        MailboxConfigurationError: On a fatal configuration problem.
    """
    result = ConnectionSyncResult(connection_id=connection_id)
    started = time.time()
    logger.info("connection_sync_started", connection_id=connection_id, dry_run=dry_run)

    try:
        if source is not None:
            ingest = ingest_label(engine, connection_id, source, dry_run=dry_run)
            result.emails_scanned = ingest.listed
            if ingest.details and not dry_run:
                with engine.connect() as conn:
                    connection = get_connection(conn, connection_id)
                result.stats = store_messages(engine, connection, ingest.details, today=today)
        result.enrichment = enrich_connection(engine, connection_id, dry_run=dry_run, today=today)
        result.success = True
    except Exception as e:
        result.error = str(e)
        logger.exception("connection_sync_failed", connection_id=connection_id, error=str(e))
        raise
    finally:
        if not dry_run:
            with engine.begin() as conn:
                insert_mailbox_sync_log(
                    conn,
                    connection_id,
                    success=result.success,
                    error_message=result.error,
                    emails_scanned=result.emails_scanned,
                    facts_created=result.stats.facts_created if result.stats else 0,
                    bookings_enriched=(
                        result.enrichment.names_updated if result.enrichment else 0
                    ),
                    review_items_created=(
                        result.enrichment.review_items_created if result.enrichment else 0
                    ),
                    duration_ms=int((time.time() - started) * 1000),
                )

    logger.info(
        "connection_sync_completed",
        connection_id=connection_id,
        emails_scanned=result.emails_scanned,
        facts_created=result.stats.facts_created if result.stats else 0,
        bookings_enriched=result.enrichment.names_updated if result.enrichment else 0,
    )
    return result


def refresh_all(
    engine: Engine,
    source_factory: Optional[SourceFactory] = None,
    dry_run: bool = False,
) -> RefreshSummary:
    """
    Sync every active feed, then, only if bookings changed, each connection of the affected workspaces.

    Args:
        engine (Engine): SQLAlchemy engine.
        source_factory (Optional[SourceFactory]): Builds a mailbox source from a
            connection row. A missing factory, or a factory returning None for a
            connection, runs enrichment over stored facts only.
        dry_run (bool): If True, do not write to DB.

    Returns:
        RefreshSummary: Feed and connection results.
    """
    logger.info("refresh_started", dry_run=dry_run)
    summary = RefreshSummary(feeds=sync_all_feeds(engine, dry_run=dry_run))

    changed_workspaces = sorted(
        {r.workspace_id for r in summary.feeds if r.changed and r.workspace_id is not None}
    )
    if not changed_workspaces:
        logger.info("refresh_completed", bookings_changed=0, connections=0)
        return summary

    with engine.connect() as conn:
        connections = get_active_connections(conn, changed_workspaces)

    for connection in connections:
        try:
            source = source_factory(connection) if source_factory else None
            summary.connections.append(
                sync_connection(engine, connection.id, source, dry_run=dry_run)
            )
        except Exception as e:
            logger.warning("connection_refresh_failed", connection_id=connection.id, error=str(e))
            summary.connections.append(
                ConnectionSyncResult(connection_id=connection.id, error=str(e))
            )

    logger.info(
        "refresh_completed",
        bookings_changed=summary.bookings_changed,
        connections=len(summary.connections),
        failed_connections=sum(1 for c in summary.connections if not c.success),
    )
    return summary

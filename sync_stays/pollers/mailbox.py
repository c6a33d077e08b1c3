import json
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from sync_stays.config import DEBUG, MAILBOX_CONCURRENCY, MAILBOX_MAX_PAGES, MAILBOX_PAGE_SIZE
from sync_stays.db.readers.connections import (
    find_label_conflicts,
    get_connection,
    get_known_message_ids,
)
from sync_stays.db.writers.messages import update_connection_scan
from sync_stays.network.mailbox import MailboxSource, call_with_retry
from sync_stays.normalizers.messages import MessageDetail, normalize_gmail_message

logger = structlog.get_logger(__name__)

WORKSPACE_NOT_LINKED = "WORKSPACE_NOT_LINKED"
LABEL_NOT_CONFIGURED = "LABEL_NOT_CONFIGURED"
LABEL_COLLISION = "LABEL_COLLISION"
LABEL_NOT_FOUND = "LABEL_NOT_FOUND"


class MailboxConfigurationError(RuntimeError):
    """A connection is configured in a way that must not be processed."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class IngestResult:
    """Messages fetched for one connection label scan."""

    connection_id: int
    label_id: Optional[str] = None
    listed: int = 0
    known: int = 0
    details: list[MessageDetail] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)
    partial: bool = False
    error_code: Optional[str] = None


def check_label_configuration(conn: Connection, connection: Any) -> str:
    """
    Validate a connection's workspace linkage and reservation label.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        connection: Mailbox connection row.

    Returns:
        str: The configured label name.

    Raises:
        MailboxConfigurationError: No workspace, no label, or another active
            connection of the workspace scans the same label.
    """
    if connection.workspace_id is None:
        raise MailboxConfigurationError(
            f"Connection {connection.id} is not linked to a workspace", WORKSPACE_NOT_LINKED
        )

    label = (connection.reservation_label or "").strip()
    if not label:
        raise MailboxConfigurationError(
            f"Connection {connection.id} has no reservation label", LABEL_NOT_CONFIGURED
        )

    conflicts = find_label_conflicts(conn, connection.workspace_id, label, connection.id)
    if conflicts:
        raise MailboxConfigurationError(
            f"Label '{label}' is also scanned by connection(s) {conflicts} "
            f"in workspace {connection.workspace_id}",
            LABEL_COLLISION,
        )
    return label


def resolve_label_id(source: MailboxSource, label: str) -> Optional[str]:
    """Provider label id for a label name (case-insensitive), or None."""
    wanted = label.strip().lower()
    for entry in call_with_retry("list_labels", source.list_labels):
        if (entry.get("name") or "").strip().lower() == wanted:
            return str(entry["id"])
    return None


def list_label_message_ids(
    source: MailboxSource, label_id: str, max_pages: int = MAILBOX_MAX_PAGES
) -> tuple[list[str], bool]:
    """
    Page through every message id under a label, up to `max_pages` pages.

    A listing error after retries ends pagination; the ids gathered so far are kept.

    Returns:
        tuple: (message ids in provider order, True if the listing is partial)
    """
    ids: list[str] = []
    token: Optional[str] = None
    for page in range(max_pages):
        try:
            page_ids, token = call_with_retry(
                "list_messages",
                source.list_message_ids,
                label_id,
                page_token=token,
                page_size=MAILBOX_PAGE_SIZE,
            )
        except Exception as e:
            logger.warning(
                "message_listing_aborted", label_id=label_id, page=page, kept=len(ids), error=str(e)
            )
            return ids, True
        ids.extend(page_ids)
        if not token:
            return ids, False

    logger.warning("message_listing_page_cap_reached", label_id=label_id, max_pages=max_pages)
    return ids, True


def fetch_message_details(
    source: MailboxSource, message_ids: list[str], max_workers: int = MAILBOX_CONCURRENCY
) -> tuple[list[MessageDetail], list[str]]:
    """
    Fetch and normalize full messages with a small worker pool.

    A message that still fails after retries is logged and skipped.

    Returns:
        tuple: (normalized messages, ids that could not be fetched)
    """
    details: list[MessageDetail] = []
    failed: list[str] = []

    def fetch(message_id: str) -> MessageDetail:
        raw = call_with_retry("get_message", source.get_message, message_id)
        return normalize_gmail_message(raw)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(fetch, message_id): message_id for message_id in message_ids}
        for future in as_completed(futures):
            message_id = futures[future]
            try:
                details.append(future.result())
            except Exception as e:
                logger.warning("message_fetch_failed", message_id=message_id, error=str(e))
                failed.append(message_id)

    if DEBUG and details:
        logger.debug("Sample message:\n%s", json.dumps(details[0].__dict__, indent=2, default=str))

    return details, failed


def ingest_label(
    engine: Engine, connection_id: int, source: MailboxSource, dry_run: bool = False
) -> IngestResult:
    """
    Fetch the messages of a connection's reservation label that are not stored yet.

    Running twice with no new mail lists the label and fetches nothing. Scan
    diagnostics are written to the connection on success and on failure.

    Args:
        engine (Engine): SQLAlchemy engine.
        connection_id (int): Mailbox connection id.
        source (MailboxSource): Mailbox collaborator for the connection.
        dry_run (bool): If True, do not record scan diagnostics.

    Returns:
        IngestResult: Unseen messages, normalized.

    Raises:
        ValueError: If the connection does not exist.
        MailboxConfigurationError: If the connection configuration is invalid.
    """
    config_error: Optional[MailboxConfigurationError] = None
    with engine.connect() as conn:
        connection = get_connection(conn, connection_id)
        if connection is None:
            raise ValueError(f"Mailbox connection {connection_id} not found")
        try:
            label = check_label_configuration(conn, connection)
        except MailboxConfigurationError as e:
            config_error = e
        known_ids = get_known_message_ids(conn, connection_id)

    if config_error is not None:
        logger.error(
            "mailbox_configuration_error",
            connection_id=connection_id,
            code=config_error.code,
            error=str(config_error),
        )
        if not dry_run:
            with engine.begin() as conn:
                update_connection_scan(
                    conn,
                    connection_id,
                    status="error",
                    error_code=config_error.code,
                    error=str(config_error),
                )
        raise config_error

    result = IngestResult(connection_id=connection_id)
    result.label_id = resolve_label_id(source, label)
    if result.label_id is None:
        logger.warning("mailbox_label_not_found", connection_id=connection_id, label=label)
        result.error_code = LABEL_NOT_FOUND
        if not dry_run:
            with engine.begin() as conn:
                update_connection_scan(
                    conn,
                    connection_id,
                    status="error",
                    error_code=LABEL_NOT_FOUND,
                    error=f"Label '{label}' not found in mailbox",
                )
        return result

    message_ids, result.partial = list_label_message_ids(source, result.label_id)
    unseen = [m for m in message_ids if m not in known_ids]
    result.listed = len(message_ids)
    result.known = len(message_ids) - len(unseen)

    if unseen:
        result.details, result.failed_ids = fetch_message_details(source, unseen)

    logger.info(
        "mailbox_label_ingested",
        connection_id=connection_id,
        listed=result.listed,
        known=result.known,
        fetched=len(result.details),
        failed=len(result.failed_ids),
        partial=result.partial,
    )

    if not dry_run:
        with engine.begin() as conn:
            update_connection_scan(
                conn,
                connection_id,
                status="partial" if result.partial or result.failed_ids else "success",
                message_count=result.listed,
            )
    return result

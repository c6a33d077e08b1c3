"""
Mailbox source collaborator and retry policy for mailbox API calls.

The core depends on three capabilities: list labels, list message ids under a
label (paginated), and fetch one message. GmailMailboxSource implements them
on the Gmail API, built per connection from a stored OAuth token (the consent
flow that writes the token happens elsewhere).
"""

from __future__ import annotations

import os
import threading
import time
from typing import Any, Callable, Optional, Protocol, TypeVar

import requests
import structlog
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from sync_stays.config import (
    MAILBOX_BACKOFF_SECONDS,
    MAILBOX_MAX_RETRIES,
    MAILBOX_PAGE_SIZE,
    MAILBOX_TOKEN_DIR,
)
from sync_stays.metrics import mailbox_requests

logger = structlog.get_logger(__name__)

T = TypeVar("T")

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]


class MailboxSource(Protocol):
    def list_labels(self) -> list[dict[str, Any]]: ...

    def list_message_ids(
        self, label_id: str, page_token: Optional[str] = None, page_size: int = MAILBOX_PAGE_SIZE
    ) -> tuple[list[str], Optional[str]]: ...

    def get_message(self, message_id: str) -> dict[str, Any]: ...


class GmailMailboxSource:
    """
    Gmail API implementation of MailboxSource for the authenticated user.

    The API client's HTTP transport is not thread-safe, so each thread that
    touches the source builds its own client from `service_factory`.
    """

    def __init__(self, service_factory: Callable[[], Any], user_id: str = "me") -> None:
        self._service_factory = service_factory
        self._user_id = user_id
        self._local = threading.local()

    @classmethod
    def from_credentials(cls, credentials: Any) -> "GmailMailboxSource":
        """Build a source from google-auth credentials obtained by the OAuth layer."""
        return cls(lambda: build("gmail", "v1", credentials=credentials, cache_discovery=False))

    @property
    def _service(self) -> Any:
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._service_factory()
            self._local.service = service
        return service

    def list_labels(self) -> list[dict[str, Any]]:
        response = self._service.users().labels().list(userId=self._user_id).execute()
        return list(response.get("labels", []))

    def list_message_ids(
        self, label_id: str, page_token: Optional[str] = None, page_size: int = MAILBOX_PAGE_SIZE
    ) -> tuple[list[str], Optional[str]]:
        response = (
            self._service.users()
            .messages()
            .list(
                userId=self._user_id,
                labelIds=[label_id],
                pageToken=page_token,
                maxResults=page_size,
            )
            .execute()
        )
        ids = [m["id"] for m in response.get("messages", [])]
        return ids, response.get("nextPageToken")

    def get_message(self, message_id: str) -> dict[str, Any]:
        return dict(
            self._service.users()
            .messages()
            .get(userId=self._user_id, id=message_id, format="full")
            .execute()
        )


def token_path(connection_id: int, token_dir: Optional[str] = None) -> Optional[str]:
    """Stored OAuth token path for a connection; None when no token dir is configured."""
    directory = token_dir if token_dir is not None else MAILBOX_TOKEN_DIR
    if not directory:
        return None
    return os.path.join(directory, f"{connection_id}.json")


def gmail_source_for(
    connection: Any, token_dir: Optional[str] = None
) -> Optional[GmailMailboxSource]:
    """
    Build a Gmail source for a connection from its stored authorized-user token.

    Tokens are written by the web app's OAuth consent flow as
    `<MAILBOX_TOKEN_DIR>/<connection id>.json`; google-auth refreshes the
    access token from the stored refresh token as needed.

    Args:
        connection: Mailbox connection row
        token_dir: Overrides MAILBOX_TOKEN_DIR

    Returns:
        GmailMailboxSource, or None when the connection has no stored token
    """
    path = token_path(connection.id, token_dir)
    if path is None or not os.path.exists(path):
        logger.info("mailbox_token_missing", connection_id=connection.id, path=path)
        return None
    credentials = Credentials.from_authorized_user_file(path, scopes=GMAIL_SCOPES)
    return GmailMailboxSource.from_credentials(credentials)


def status_of(err: Exception) -> Optional[int]:
    """HTTP status carried by a mailbox API error, if any."""
    status = getattr(err, "status_code", None)
    if status is None:
        resp = getattr(err, "resp", None) or getattr(err, "response", None)
        status = getattr(resp, "status", None) or getattr(resp, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def should_retry(err: Exception) -> bool:
    """
    Determine whether a mailbox call should be retried.

    Args:
        err (Exception): Exception raised by the call.

    Returns:
        bool: True for rate limiting (429), server errors (5xx) and timeouts.
    """
    if isinstance(err, (requests.Timeout, TimeoutError)):
        return True
    status = status_of(err)
    if status is None:
        return False
    return status == 429 or 500 <= status < 600


def call_with_retry(
    operation: str,
    fn: Callable[..., T],
    *args: Any,
    max_retries: int = MAILBOX_MAX_RETRIES,
    backoff_seconds: float = MAILBOX_BACKOFF_SECONDS,
    **kwargs: Any,
) -> T:
    """
    Call a mailbox operation, retrying transient failures with exponential backoff.

    Args:
        operation: Metric/log label (list_labels, list_messages, get_message)
        fn: Callable performing the API call
        max_retries: Retries after the first attempt
        backoff_seconds: Base delay; attempt n sleeps backoff_seconds * 2**n

    Returns:
        Whatever fn returns

    Raises:
        Exception: The last error once retries are exhausted, or any non-retryable error
    """
    retries = 0
    while True:
        try:
            result = fn(*args, **kwargs)
            mailbox_requests.labels(operation=operation, status="success").inc()
            return result
        except Exception as err:
            if retries >= max_retries or not should_retry(err):
                mailbox_requests.labels(operation=operation, status="failure").inc()
                raise
            delay = backoff_seconds * (2**retries)
            retries += 1
            mailbox_requests.labels(operation=operation, status="retry").inc()
            logger.warning(
                "mailbox_call_retry",
                operation=operation,
                attempt=retries,
                status=status_of(err),
                delay=delay,
            )
            time.sleep(delay)

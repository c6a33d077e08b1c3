"""
HTTP client for calendar feed documents.

A feed fetch is a single bounded GET. Timeouts and non-2xx responses are
terminal for the sync cycle; the next scheduled cycle is the retry.
"""

import time
from dataclasses import dataclass
from typing import Optional

import requests
import structlog

from sync_stays.config import DIAGNOSTIC_SNIPPET_LENGTH, FEED_FETCH_TIMEOUT
from sync_stays.metrics import feed_latency, feed_requests

logger = structlog.get_logger(__name__)

# Some providers return 403 or an HTML interstitial to non-browser clients
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.8",
}


@dataclass
class FetchResult:
    """Response fields kept for feed diagnostics."""

    status_code: int
    content_type: Optional[str]
    final_url: str
    text: str

    @property
    def snippet(self) -> str:
        return self.text[:DIAGNOSTIC_SNIPPET_LENGTH]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class FeedFetchError(RuntimeError):
    """Raised for a non-2xx feed response; carries the response diagnostics."""

    def __init__(self, message: str, result: Optional[FetchResult] = None) -> None:
        super().__init__(message)
        self.result = result


def fetch_feed(url: str, timeout: float = FEED_FETCH_TIMEOUT) -> FetchResult:
    """
    Fetch a calendar feed document, following redirects.

    Args:
        url (str): Feed URL.
        timeout (float): Connect/read timeout in seconds.

    Returns:
        FetchResult: Status, content type, final URL and body text.

    Raises:
        FeedFetchError: If the response status is not 2xx.
        requests.RequestException: On timeout or connection failure.
    """
    start_time = time.time()
    try:
        res = requests.get(url, headers=BROWSER_HEADERS, timeout=timeout, allow_redirects=True)
    except requests.Timeout:
        feed_requests.labels(status_code="timeout").inc()
        logger.warning("feed_fetch_timeout", url=url, timeout=timeout)
        raise
    except requests.RequestException as err:
        feed_requests.labels(status_code="error").inc()
        logger.warning("feed_fetch_error", url=url, error=str(err))
        raise
    finally:
        feed_latency.observe(time.time() - start_time)

    feed_requests.labels(status_code=str(res.status_code)).inc()

    result = FetchResult(
        status_code=res.status_code,
        content_type=res.headers.get("Content-Type"),
        final_url=res.url or url,
        text=res.text or "",
    )
    logger.debug(
        "feed_fetched",
        url=url,
        status_code=result.status_code,
        content_type=result.content_type,
        bytes=len(result.text),
    )

    if not result.ok:
        raise FeedFetchError(f"Feed returned HTTP {result.status_code}", result=result)
    return result

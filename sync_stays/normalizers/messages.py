import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from bs4 import BeautifulSoup

logger = structlog.get_logger(__name__)


@dataclass
class MessageDetail:
    """Mailbox message reduced to the fields the fact pipeline reads."""

    message_id: str
    subject: str
    snippet: str
    body_text: Optional[str]
    body_html: Optional[str]
    received_at: Optional[datetime] = None

    @property
    def text_for_parsing(self) -> str:
        """Plain-text body, else text of the HTML body, else the snippet."""
        if self.body_text and self.body_text.strip():
            return self.body_text
        if self.body_html:
            text = html_to_text(self.body_html)
            if text:
                return text
        return self.snippet or ""


def html_to_text(html: str) -> str:
    """
    Convert an HTML email body to plain text, one block per line.

    Style and script blocks are dropped; every tag boundary becomes a line
    break so "Label: value" pairs in table cells stay on their own lines.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["style", "script", "head"]):
        tag.decompose()
    text = soup.get_text("\n")
    lines = (line.replace("\xa0", " ").strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def _decode_part(data: Optional[str]) -> Optional[str]:
    if not data:
        return None
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("utf-8")).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        logger.warning("message_part_decode_failed")
        return None


def _walk_parts(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flatten a MIME payload tree depth-first (multipart/alternative nests parts)."""
    parts = [payload]
    for child in payload.get("parts") or []:
        parts.extend(_walk_parts(child))
    return parts


def normalize_gmail_message(raw: Dict[str, Any]) -> MessageDetail:
    """
    Normalize a Gmail API `users.messages.get(format="full")` response.

    Args:
        raw: Message resource as returned by the API

    Returns:
        MessageDetail with decoded text/plain and text/html bodies
    """
    payload = raw.get("payload") or {}
    headers = {h.get("name", "").lower(): h.get("value", "") for h in payload.get("headers", [])}

    body_text: Optional[str] = None
    body_html: Optional[str] = None
    for part in _walk_parts(payload):
        mime_type = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")
        if mime_type == "text/plain" and body_text is None:
            body_text = _decode_part(data)
        elif mime_type == "text/html" and body_html is None:
            body_html = _decode_part(data)

    received_at = None
    if raw.get("internalDate"):
        received_at = datetime.fromtimestamp(int(raw["internalDate"]) / 1000, tz=timezone.utc)

    return MessageDetail(
        message_id=raw["id"],
        subject=headers.get("subject", ""),
        snippet=raw.get("snippet", ""),
        body_text=body_text,
        body_html=body_html,
        received_at=received_at,
    )

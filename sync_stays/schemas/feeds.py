from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FeedDiagnosticsOut(BaseModel):
    """
    Diagnostics persisted by the most recent sync attempt of a feed.
    """

    feed_id: int
    property_id: int
    name: str = Field(..., description="Source label")
    source_type: str
    is_active: bool
    last_synced_at: Optional[datetime] = None
    last_sync_status: Optional[str] = Field(None, description="`success` or `error`")
    last_error: Optional[str] = None
    last_http_status: Optional[int] = None
    last_content_type: Optional[str] = None
    last_final_url: Optional[str] = None
    last_response_snippet: Optional[str] = None
    last_event_count: Optional[int] = None
    last_booking_count: Optional[int] = None

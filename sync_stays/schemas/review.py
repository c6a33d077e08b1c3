from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ReviewItemOut(BaseModel):
    """
    A confirmation no booking could be matched to, waiting for a human.
    """

    id: int
    workspace_id: int
    connection_id: int
    source_message_id: str
    fact_id: Optional[int] = None
    item_type: str
    extracted_data: dict[str, Any]
    confidence: Optional[float] = None
    status: str
    resolved_booking_id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ReviewActionPayload(BaseModel):
    """
    Schema for acting on a review item.

    `resolve` needs a property_id; the optional fields override the item's
    extracted snapshot. `dismiss` ignores everything else.
    """

    action: Literal["resolve", "dismiss"] = Field("resolve", description="resolve or dismiss")
    property_id: Optional[int] = Field(None, description="Property the stay belongs to")
    guest_name: Optional[str] = Field(None, max_length=255)
    guest_count: Optional[int] = Field(None, ge=1, le=30)
    check_in: Optional[date] = None
    check_out: Optional[date] = None

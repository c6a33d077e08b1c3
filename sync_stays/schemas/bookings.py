from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ResolutionPayload(BaseModel):
    """
    Schema for a manual resolution. Every field is optional; omitted fields are stored as null.
    """

    guest_name: Optional[str] = Field(None, max_length=255, description="Guest name override")
    guest_count: Optional[int] = Field(None, ge=1, le=30, description="Guest count override")
    connection_id: Optional[int] = Field(
        None, description="Mailbox connection the stay belongs to (display color)"
    )
    notes: Optional[str] = Field(None, description="Free-form booking notes")


class BookingOut(BaseModel):
    """
    Booking as returned by the resolution endpoints.
    """

    id: int
    property_id: int
    check_in: datetime
    check_out: datetime
    guest_name: Optional[str] = None
    guest_count: Optional[int] = None
    manual_guest_name: Optional[str] = None
    manual_guest_count: Optional[int] = None
    manual_connection_id: Optional[int] = None
    manual_notes: Optional[str] = None
    manually_resolved_at: Optional[datetime] = None

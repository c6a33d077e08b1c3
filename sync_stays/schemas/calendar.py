from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CleaningPolicyOut(BaseModel):
    """
    Cleaning buffer policy of one property.
    """

    pre_days: int = Field(0, description="Cleaning days before each check-in")
    post_days: int = Field(0, description="Cleaning days after each check-out")


class CalendarItemOut(BaseModel):
    """
    Schema for one reconciled calendar item (booking or synthesized cleaning day).

    Guest fields are already masked according to the caller's permissions.
    """

    id: str = Field(..., description="Booking id, or `cleaning:{property_id}|{date}`")
    type: str = Field(..., description="`booking` or `cleaning`")
    property_id: int
    workspace_id: Optional[int] = None
    check_in: datetime
    check_out: datetime
    all_day: bool = False
    booking_id: Optional[int] = None
    source_feed_id: Optional[int] = None
    source_type: Optional[str] = None
    platform: Optional[str] = None
    status: Optional[str] = None
    summary: Optional[str] = None
    guest_name: Optional[str] = None
    guest_first_name: Optional[str] = None
    guest_last_initial: Optional[str] = None
    guest_count: Optional[int] = None
    reservation_code: Optional[str] = None
    manual_guest_name: Optional[str] = None
    manual_guest_count: Optional[int] = None
    manual_notes: Optional[str] = None
    is_hold: bool = False
    enriched: bool = False
    manually_resolved: bool = False
    match_reason: Optional[str] = None
    display_name: Optional[str] = None
    display_guest_count: Optional[int] = None
    display_source: Optional[str] = Field(
        None, description="`manual`, `confirmation_code`, `date_window` or `feed`"
    )
    connection_id: Optional[int] = None
    connection_color: Optional[str] = None


class CalendarResponse(BaseModel):
    """
    Reconciled calendar for a date range.
    """

    items: list[CalendarItemOut]
    property_policies: dict[int, CleaningPolicyOut]

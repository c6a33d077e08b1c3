from datetime import date, datetime, time, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sync_stays.dependencies import get_caller_id, get_db_engine
from sync_stays.schemas.calendar import CalendarItemOut, CalendarResponse, CleaningPolicyOut
from sync_stays.services.reconciliation import load_calendar

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/calendar", response_model=CalendarResponse)
def get_calendar(
    start: date = Query(..., description="First day of the range (inclusive)"),
    end: date = Query(..., description="Last day of the range (exclusive)"),
    user_id: str = Depends(get_caller_id),
    engine: Engine = Depends(get_db_engine),
) -> CalendarResponse:
    """
    Reconciled calendar for every property the caller may see.

    Args:
        start: Range start day
        end: Range end day, exclusive
        user_id: Caller identity (X-User-Id header)

    Returns:
        CalendarResponse: Booking and cleaning items plus each property's cleaning policy
    """
    if end <= start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end must be after start",
        )

    try:
        view = load_calendar(
            engine,
            user_id,
            datetime.combine(start, time(0), tzinfo=timezone.utc),
            datetime.combine(end, time(0), tzinfo=timezone.utc),
        )
        return CalendarResponse(
            items=[CalendarItemOut(**item.to_dict()) for item in view.items],
            property_policies={
                pid: CleaningPolicyOut(pre_days=p.pre_days, post_days=p.post_days)
                for pid, p in view.property_policies.items()
            },
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("calendar_load_failed", user_id=user_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

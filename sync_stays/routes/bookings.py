import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.engine import Engine

from sync_stays.dependencies import get_db_engine
from sync_stays.schemas.bookings import BookingOut, ResolutionPayload
from sync_stays.services.manual_resolution import (
    BookingNotFoundError,
    clear_resolution,
    resolve_booking,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


def _booking_out(row: object) -> BookingOut:
    return BookingOut.model_validate(row, from_attributes=True)


@router.put("/bookings/{booking_id}/resolution", response_model=BookingOut)
def put_resolution(
    booking_id: int,
    payload: ResolutionPayload,
    engine: Engine = Depends(get_db_engine),
) -> BookingOut:
    """
    Record a manual resolution on a booking. It overrides every automatic source.

    Args:
        booking_id: Booking to resolve
        payload: Guest name / count / connection / notes overrides

    Returns:
        BookingOut: The updated booking
    """
    try:
        booking = resolve_booking(
            engine,
            booking_id,
            guest_name=payload.guest_name,
            guest_count=payload.guest_count,
            connection_id=payload.connection_id,
            notes=payload.notes,
        )
        logger.info("booking_manually_resolved", booking_id=booking_id)
        return _booking_out(booking)

    except BookingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("manual_resolution_failed", booking_id=booking_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/bookings/{booking_id}/resolution", response_model=BookingOut)
def delete_resolution(
    booking_id: int,
    engine: Engine = Depends(get_db_engine),
) -> BookingOut:
    """
    Clear a booking's manual resolution, restoring automatic display precedence.
    """
    try:
        booking = clear_resolution(engine, booking_id)
        logger.info("booking_resolution_cleared", booking_id=booking_id)
        return _booking_out(booking)

    except BookingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("manual_resolution_clear_failed", booking_id=booking_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

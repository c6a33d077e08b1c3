from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from sync_stays.db.readers.bookings import get_booking
from sync_stays.db.readers.connections import get_connection
from sync_stays.db.writers.bookings import clear_manual_resolution, set_manual_resolution

logger = structlog.get_logger(__name__)


class BookingNotFoundError(LookupError):
    """The booking does not exist or is not active."""


def resolve_booking(
    engine: Engine,
    booking_id: int,
    guest_name: Optional[str] = None,
    guest_count: Optional[int] = None,
    connection_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> Any:
    """
    Record a human override on a booking; it wins over every automatic source.

    Args:
        engine (Engine): SQLAlchemy engine.
        booking_id (int): Booking to override.
        guest_name (Optional[str]): Override guest name.
        guest_count (Optional[int]): Override guest count.
        connection_id (Optional[int]): Connection the stay belongs to (display color).
        notes (Optional[str]): Free-form notes.

    Returns:
        Row: The updated booking.

    Raises:
        BookingNotFoundError: If the booking does not exist.
        ValueError: If the connection belongs to another workspace.
    """
    with engine.begin() as conn:
        booking = get_booking(conn, booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

        if connection_id is not None:
            connection = get_connection(conn, connection_id)
            if connection is None or connection.workspace_id != booking.workspace_id:
                raise ValueError(
                    f"Connection {connection_id} does not belong to workspace {booking.workspace_id}"
                )

        set_manual_resolution(
            conn,
            booking_id,
            guest_name=guest_name.strip() if guest_name else None,
            guest_count=guest_count,
            connection_id=connection_id,
            notes=notes,
        )
        return get_booking(conn, booking_id)


def clear_resolution(engine: Engine, booking_id: int) -> Any:
    """
    Remove a booking's manual override, restoring automatic precedence.

    Raises:
        BookingNotFoundError: If the booking does not exist.
    """
    with engine.begin() as conn:
        if get_booking(conn, booking_id) is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        clear_manual_resolution(conn, booking_id)
        return get_booking(conn, booking_id)

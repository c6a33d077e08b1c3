"""
Shared fixtures.

Configuration is read at import time, so the environment is prepared before any
sync_stays module is imported. Database tests run against an in-memory SQLite
database with the schema attached under the configured schema name.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ALLOWED_ORIGINS", "http://localhost:3000")

from datetime import date, datetime, time, timezone  # noqa: E402
from typing import Any, Generator, Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, event, insert, select  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from sync_stays.config import SCHEMA  # noqa: E402
from sync_stays.db.writers.bookings import insert_booking  # noqa: E402
from sync_stays.db.writers.facts import insert_fact  # noqa: E402
from sync_stays.models.bookings import Booking  # noqa: E402
from sync_stays.models.feeds import CalendarFeed  # noqa: E402
from sync_stays.models.mailbox import ConnectionProperty, MailboxConnection  # noqa: E402
from sync_stays.models.members import MemberProperty, WorkspaceMember  # noqa: E402
from sync_stays.models.properties import Property  # noqa: E402
from sync_stays.models.registry import metadata  # noqa: E402


def noon(day: date) -> datetime:
    """All-day feed events are stored at 12:00 UTC."""
    return datetime.combine(day, time(12, 0), tzinfo=timezone.utc)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory database with every table created."""
    test_engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _attach_schema(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.execute(f"ATTACH DATABASE ':memory:' AS {SCHEMA}")

    metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


class Seeder:
    """Inserts the rows tests build scenarios from."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._message_seq = 0

    def property(
        self, workspace_id: int = 1, name: str = "Beach House", pre: int = 0, post: int = 0
    ) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(Property.__table__).values(
                    workspace_id=workspace_id,
                    name=name,
                    cleaning_pre_days=pre,
                    cleaning_post_days=post,
                )
            )
            return int(result.inserted_primary_key[0])

    def feed(
        self,
        property_id: int,
        name: str = "Airbnb",
        source_type: str = "airbnb",
        url: str = "https://example.com/feed.ics",
    ) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(CalendarFeed.__table__).values(
                    property_id=property_id, url=url, name=name, source_type=source_type
                )
            )
            return int(result.inserted_primary_key[0])

    def connection(
        self,
        workspace_id: Optional[int] = 1,
        property_ids: tuple[int, ...] = (),
        label: Optional[str] = "Reservations",
        color: Optional[str] = None,
        name: str = "Host inbox",
    ) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(MailboxConnection.__table__).values(
                    workspace_id=workspace_id,
                    name=name,
                    reservation_label=label,
                    color=color,
                )
            )
            connection_id = int(result.inserted_primary_key[0])
            for property_id in property_ids:
                conn.execute(
                    insert(ConnectionProperty.__table__).values(
                        connection_id=connection_id, property_id=property_id
                    )
                )
            return connection_id

    def fact(
        self,
        connection_id: int,
        check_in: Optional[date],
        check_out: Optional[date],
        guest_name: Optional[str] = None,
        guest_count: Optional[int] = None,
        code: Optional[str] = None,
        workspace_id: int = 1,
        confidence: float = 0.9,
        message_id: Optional[str] = None,
    ) -> int:
        self._message_seq += 1
        with self.engine.begin() as conn:
            fact_id = insert_fact(
                conn,
                {
                    "connection_id": connection_id,
                    "workspace_id": workspace_id,
                    "source_message_id": message_id or f"msg-{self._message_seq}",
                    "check_in": check_in,
                    "check_out": check_out,
                    "guest_name": guest_name,
                    "guest_count": guest_count,
                    "confirmation_code": code,
                    "confidence": confidence,
                    "raw_extraction": {},
                },
            )
        assert fact_id is not None
        return fact_id

    def booking(
        self,
        property_id: int,
        check_in: date,
        check_out: date,
        guest_name: Optional[str] = "Reserved",
        feed_id: Optional[int] = None,
        uid: Optional[str] = None,
        workspace_id: int = 1,
        **extra: Any,
    ) -> int:
        values = {
            "workspace_id": workspace_id,
            "property_id": property_id,
            "source_feed_id": feed_id,
            "external_uid": uid or f"uid-{property_id}-{check_in.isoformat()}",
            "check_in": noon(check_in),
            "check_out": noon(check_out),
            "guest_name": guest_name,
            "summary": guest_name,
            **extra,
        }
        with self.engine.begin() as conn:
            return insert_booking(conn, values)

    def member(
        self,
        user_id: str,
        workspace_id: int = 1,
        property_ids: tuple[int, ...] = (),
        **permissions: bool,
    ) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(WorkspaceMember.__table__).values(
                    user_id=user_id, workspace_id=workspace_id, **permissions
                )
            )
            for property_id in property_ids:
                conn.execute(
                    insert(MemberProperty.__table__).values(
                        user_id=user_id, workspace_id=workspace_id, property_id=property_id
                    )
                )

    def get_booking(self, booking_id: int) -> Any:
        with self.engine.connect() as conn:
            return conn.execute(
                select(Booking.__table__).where(Booking.__table__.c.id == booking_id)
            ).fetchone()

    def rows(self, table: Any) -> list[Any]:
        with self.engine.connect() as conn:
            return list(conn.execute(select(table)).fetchall())


@pytest.fixture
def seed(engine: Engine) -> Seeder:
    """Row factory bound to the test engine."""
    return Seeder(engine)

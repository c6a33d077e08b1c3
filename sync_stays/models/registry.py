"""Imports every model so Base.metadata is complete for alembic and create_all."""

from sync_stays.models.base import Base
from sync_stays.models.bookings import Booking  # noqa: F401
from sync_stays.models.facts import (  # noqa: F401
    EnrichmentLog,
    EnrichmentReviewItem,
    ReservationFact,
)
from sync_stays.models.feeds import CalendarFeed, FeedSyncLog  # noqa: F401
from sync_stays.models.mailbox import (  # noqa: F401
    ConnectionProperty,
    MailboxConnection,
    MailboxMessage,
    MailboxSyncLog,
)
from sync_stays.models.members import MemberProperty, WorkspaceMember  # noqa: F401
from sync_stays.models.properties import Property  # noqa: F401

metadata = Base.metadata

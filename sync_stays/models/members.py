# models/members.py

from sqlalchemy import Boolean, Column, Integer, String, UniqueConstraint, true

from sync_stays.config import SCHEMA
from sync_stays.models.base import Base


class WorkspaceMember(Base):
    """
    ORM model for a user's membership and calendar permissions in a workspace.

    Team management is external; the calendar query reads these grants to decide
    which workspaces a caller sees and which guest fields are masked.
    """

    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("user_id", "workspace_id", name="uq_workspace_members_user_workspace"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    workspace_id = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    can_view_calendar = Column(Boolean, nullable=False, default=True, server_default=true())
    can_view_guest_name = Column(Boolean, nullable=False, default=True, server_default=true())
    can_view_guest_count = Column(Boolean, nullable=False, default=True, server_default=true())
    can_view_booking_notes = Column(Boolean, nullable=False, default=True, server_default=true())


class MemberProperty(Base):
    """Property restriction for a member; no rows for a workspace means all properties."""

    __tablename__ = "member_properties"
    __table_args__ = {"schema": SCHEMA}

    user_id = Column(String(64), primary_key=True)
    workspace_id = Column(Integer, primary_key=True)
    property_id = Column(Integer, primary_key=True)

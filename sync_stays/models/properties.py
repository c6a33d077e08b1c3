# models/properties.py

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from sync_stays.config import SCHEMA
from sync_stays.models.base import Base


class Property(Base):
    """
    ORM model for a rental property and its cleaning policy.

    Workspace and property management happen outside this service; rows are
    read here for the cleaning-window policy and to scope feeds, bookings and
    mailbox connections. A pre/post day count of zero means no buffer on that side.
    """

    __tablename__ = "properties"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    cleaning_pre_days = Column(Integer, nullable=False, default=0, server_default="0")
    cleaning_post_days = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.engine import Connection

from sync_stays.models.members import MemberProperty, WorkspaceMember
from sync_stays.models.properties import Property

members = WorkspaceMember.__table__
member_properties = MemberProperty.__table__
properties = Property.__table__


def get_calendar_memberships(conn: Connection, user_id: str) -> list[Any]:
    """Active memberships of a user that grant calendar access."""
    stmt = select(members).where(
        members.c.user_id == user_id,
        members.c.is_active.is_(True),
        members.c.can_view_calendar.is_(True),
    )
    return list(conn.execute(stmt).fetchall())


def get_property_restrictions(conn: Connection, user_id: str) -> dict[int, set[int]]:
    """
    Map workspace id -> allowed property ids for a user.

    Workspaces without rows are unrestricted and absent from the result.
    """
    stmt = select(member_properties).where(member_properties.c.user_id == user_id)
    restrictions: dict[int, set[int]] = {}
    for row in conn.execute(stmt):
        restrictions.setdefault(row.workspace_id, set()).add(row.property_id)
    return restrictions


def get_properties(conn: Connection, workspace_ids: Sequence[int]) -> list[Any]:
    """Properties of the given workspaces."""
    if not workspace_ids:
        return []
    stmt = (
        select(properties)
        .where(properties.c.workspace_id.in_(list(workspace_ids)))
        .order_by(properties.c.id)
    )
    return list(conn.execute(stmt).fetchall())

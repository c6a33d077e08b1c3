from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from sync_stays.models.mailbox import ConnectionProperty, MailboxConnection, MailboxMessage

connections = MailboxConnection.__table__
links = ConnectionProperty.__table__
messages = MailboxMessage.__table__


def get_connection(conn: Connection, connection_id: int) -> Optional[Any]:
    """Fetch a mailbox connection by id, or None."""
    return conn.execute(select(connections).where(connections.c.id == connection_id)).fetchone()


def get_linked_property_ids(conn: Connection, connection_id: int) -> list[int]:
    """Property ids a connection reports on."""
    stmt = (
        select(links.c.property_id)
        .where(links.c.connection_id == connection_id)
        .order_by(links.c.property_id)
    )
    return list(conn.execute(stmt).scalars().all())


def get_connection_ids_for_property(conn: Connection, property_id: int) -> list[int]:
    """Connection ids linked to a property."""
    stmt = select(links.c.connection_id).where(links.c.property_id == property_id)
    return list(conn.execute(stmt).scalars().all())


def find_label_conflicts(
    conn: Connection, workspace_id: int, label: str, connection_id: int
) -> list[int]:
    """
    Other active connections of a workspace scanning the same label (case-insensitive).

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        workspace_id (int): Workspace of the connection being processed.
        label (str): Reservation label name.
        connection_id (int): The connection being processed (excluded).

    Returns:
        list[int]: Conflicting connection ids; empty when the configuration is valid.
    """
    stmt = select(connections.c.id).where(
        connections.c.workspace_id == workspace_id,
        connections.c.is_active.is_(True),
        connections.c.id != connection_id,
        func.lower(connections.c.reservation_label) == label.strip().lower(),
    )
    return list(conn.execute(stmt).scalars().all())


def get_active_connections(
    conn: Connection, workspace_ids: Optional[Sequence[int]] = None
) -> list[Any]:
    """Active connections, optionally restricted to some workspaces."""
    stmt = select(connections).where(connections.c.is_active.is_(True)).order_by(connections.c.id)
    if workspace_ids is not None:
        stmt = stmt.where(connections.c.workspace_id.in_(list(workspace_ids)))
    return list(conn.execute(stmt).fetchall())


def get_connection_colors(conn: Connection, workspace_ids: Sequence[int]) -> dict[int, Optional[str]]:
    """Map connection id -> display color for the given workspaces."""
    if not workspace_ids:
        return {}
    stmt = select(connections.c.id, connections.c.color).where(
        connections.c.workspace_id.in_(list(workspace_ids))
    )
    return {row.id: row.color for row in conn.execute(stmt)}


def get_connections_by_property(conn: Connection, property_ids: Sequence[int]) -> dict[int, list[int]]:
    """Map property id -> linked connection ids."""
    if not property_ids:
        return {}
    stmt = select(links.c.property_id, links.c.connection_id).where(
        links.c.property_id.in_(list(property_ids))
    )
    result: dict[int, list[int]] = {}
    for row in conn.execute(stmt):
        result.setdefault(row.property_id, []).append(row.connection_id)
    return result


def get_known_message_ids(conn: Connection, connection_id: int) -> set[str]:
    """Provider message ids already stored for a connection."""
    stmt = select(messages.c.provider_message_id).where(messages.c.connection_id == connection_id)
    return set(conn.execute(stmt).scalars().all())


def list_stored_messages(conn: Connection, connection_id: int) -> list[Any]:
    """Stored raw messages of a connection, oldest first."""
    stmt = (
        select(messages)
        .where(messages.c.connection_id == connection_id)
        .order_by(messages.c.received_at, messages.c.id)
    )
    return list(conn.execute(stmt).fetchall())

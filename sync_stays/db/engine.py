"""
SQLAlchemy engine singleton with production-ready connection pooling.

This module creates a single engine instance shared by the API and the pollers.
Pool settings apply to server databases; SQLite URLs (local runs, tests) use
SQLAlchemy's default pool for that dialect.
"""

from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from sync_stays.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")

_pool_options: dict[str, Any] = {}
if not DATABASE_URL.startswith("sqlite"):
    _pool_options = {
        "pool_size": 10,  # Connections kept in the pool
        "max_overflow": 20,  # Extra connections under burst load
        "pool_pre_ping": True,  # Detect stale connections before use
        "pool_recycle": 3600,
    }

engine: Engine = create_engine(
    DATABASE_URL,
    future=True,
    echo=False,
    **_pool_options,
)


def check_engine_health(db_engine: Engine | None = None) -> bool:
    """
    Check if database engine is healthy and connections are working.

    This function is used by the /ready endpoint to verify database
    connectivity before allowing traffic to the service.

    Args:
        db_engine: Engine to probe (defaults to the module engine)

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with (db_engine or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False

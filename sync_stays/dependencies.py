"""
FastAPI dependency injection providers.

Dependencies can be overridden in tests using app.dependency_overrides, which
is how the route tests swap in an in-memory database engine.
"""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.engine import Engine

from sync_stays.db.engine import engine


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Example:
        >>> from fastapi import Depends
        >>> from sync_stays.dependencies import get_db_engine
        >>>
        >>> @router.get("/feeds/{feed_id}/diagnostics")
        >>> def feed_diagnostics(feed_id: int, engine: Engine = Depends(get_db_engine)):
        ...     with engine.connect() as conn:
        ...         ...

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
    """
    yield engine


def get_caller_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """
    Caller identity set by the upstream authentication layer.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    return x_user_id.strip()

from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sync_stays.config import DRY_RUN
from sync_stays.db.readers.feeds import get_feed
from sync_stays.dependencies import get_db_engine
from sync_stays.schemas.feeds import FeedDiagnosticsOut
from sync_stays.services.feed_sync import sync_all_feeds, sync_feed

logger = structlog.get_logger(__name__)
router = APIRouter()


def _feed_or_404(engine: Engine, feed_id: int) -> object:
    with engine.connect() as conn:
        feed = get_feed(conn, feed_id)
    if feed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Feed {feed_id} not found",
        )
    return feed


@router.post("/feeds/sync", status_code=status.HTTP_202_ACCEPTED)
def trigger_all_feeds_sync(
    background_tasks: BackgroundTasks,
    workspace_id: Optional[int] = Query(None, description="Limit to one workspace"),
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Sync every active feed (optionally of one workspace) in the background.
    """
    try:
        use_dry_run = DRY_RUN if dry_run is None else dry_run

        background_tasks.add_task(
            sync_all_feeds,
            engine,
            dry_run=use_dry_run,
            workspace_id=workspace_id,
        )

        logger.info("feeds_sync_triggered", workspace_id=workspace_id, dry_run=use_dry_run)

        return {"message": f"Sync scheduled for all active feeds (dry_run={use_dry_run})"}

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("feeds_sync_trigger_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/feeds/{feed_id}/sync", status_code=status.HTTP_202_ACCEPTED)
def trigger_feed_sync(
    feed_id: int,
    background_tasks: BackgroundTasks,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Fetch, parse and upsert one feed in the background.

    Args:
        feed_id: Calendar feed id
        background_tasks: FastAPI background task runner
        dry_run: Override DRY_RUN setting (optional)

    Returns:
        dict: Message confirming sync has been scheduled
    """
    try:
        _feed_or_404(engine, feed_id)

        use_dry_run = DRY_RUN if dry_run is None else dry_run

        background_tasks.add_task(sync_feed, engine, feed_id, dry_run=use_dry_run)

        logger.info("feed_sync_triggered", feed_id=feed_id, dry_run=use_dry_run)

        return {"message": f"Sync scheduled for feed {feed_id} (dry_run={use_dry_run})"}

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("feed_sync_trigger_failed", feed_id=feed_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/feeds/{feed_id}/diagnostics", response_model=FeedDiagnosticsOut)
def feed_diagnostics(
    feed_id: int,
    engine: Engine = Depends(get_db_engine),
) -> FeedDiagnosticsOut:
    """
    Diagnostics persisted by the feed's most recent sync attempt.
    """
    try:
        feed = _feed_or_404(engine, feed_id)
        data = dict(feed._mapping)
        data["feed_id"] = data.pop("id")
        return FeedDiagnosticsOut(**data)

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("feed_diagnostics_failed", feed_id=feed_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

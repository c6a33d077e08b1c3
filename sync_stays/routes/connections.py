from typing import Any, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sync_stays.config import DRY_RUN
from sync_stays.db.readers.connections import get_connection
from sync_stays.dependencies import get_db_engine
from sync_stays.network.mailbox import gmail_source_for
from sync_stays.services.enrichment import enrich_connection
from sync_stays.services.fact_store import reprocess_connection
from sync_stays.services.sync import sync_connection

logger = structlog.get_logger(__name__)
router = APIRouter()


def validate_connection_or_404(engine: Engine, connection_id: int) -> Any:
    """
    Return the mailbox connection; 404 if it does not exist, 400 if it has no workspace.
    """
    with engine.connect() as conn:
        connection = get_connection(conn, connection_id)
    if connection is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Connection {connection_id} not found",
        )
    if connection.workspace_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Connection {connection_id} is not linked to a workspace",
        )
    return connection


@router.post("/connections/{connection_id}/enrich", status_code=status.HTTP_202_ACCEPTED)
def trigger_enrichment(
    connection_id: int,
    background_tasks: BackgroundTasks,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Run the batch enrichment pass over a connection's stored facts in the background.
    """
    try:
        validate_connection_or_404(engine, connection_id)

        use_dry_run = DRY_RUN if dry_run is None else dry_run

        background_tasks.add_task(enrich_connection, engine, connection_id, dry_run=use_dry_run)

        logger.info("enrichment_triggered", connection_id=connection_id, dry_run=use_dry_run)

        return {
            "message": f"Enrichment scheduled for connection {connection_id} (dry_run={use_dry_run})"
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("enrichment_trigger_failed", connection_id=connection_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/connections/{connection_id}/reprocess", status_code=status.HTTP_202_ACCEPTED)
def trigger_reprocess(
    connection_id: int,
    background_tasks: BackgroundTasks,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Re-parse every stored message of a connection, then re-run enrichment, in the background.

    Used after classifier or extractor rules change.
    """
    try:
        validate_connection_or_404(engine, connection_id)

        use_dry_run = DRY_RUN if dry_run is None else dry_run

        background_tasks.add_task(reprocess_connection, engine, connection_id, dry_run=use_dry_run)

        logger.info("reprocess_triggered", connection_id=connection_id, dry_run=use_dry_run)

        return {
            "message": f"Reprocessing scheduled for connection {connection_id} (dry_run={use_dry_run})"
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("reprocess_trigger_failed", connection_id=connection_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/connections/{connection_id}/scan", status_code=status.HTTP_202_ACCEPTED)
def trigger_scan(
    connection_id: int,
    background_tasks: BackgroundTasks,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Scan the connection's reservation label, store new facts and enrich, in the background.

    Returns 409 when no mailbox token is stored for the connection.
    """
    try:
        connection = validate_connection_or_404(engine, connection_id)

        source = gmail_source_for(connection)
        if source is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Connection {connection_id} has no stored mailbox credentials",
            )

        use_dry_run = DRY_RUN if dry_run is None else dry_run

        background_tasks.add_task(sync_connection, engine, connection_id, source, dry_run=use_dry_run)

        logger.info("scan_triggered", connection_id=connection_id, dry_run=use_dry_run)

        return {"message": f"Scan scheduled for connection {connection_id} (dry_run={use_dry_run})"}

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("scan_trigger_failed", connection_id=connection_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

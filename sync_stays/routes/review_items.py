from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sync_stays.dependencies import get_db_engine
from sync_stays.schemas.review import ReviewActionPayload, ReviewItemOut
from sync_stays.services.review import (
    NoMatchingBookingError,
    ReviewItemNotFoundError,
    dismiss_item,
    list_pending,
    resolve_item,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


def _item_out(row: Any) -> ReviewItemOut:
    return ReviewItemOut.model_validate(row, from_attributes=True)


@router.get("/review-items", response_model=list[ReviewItemOut])
def get_review_items(
    workspace_id: int = Query(..., description="Workspace whose queue to list"),
    engine: Engine = Depends(get_db_engine),
) -> list[ReviewItemOut]:
    """
    Pending review items of a workspace, newest first.
    """
    try:
        return [_item_out(row) for row in list_pending(engine, workspace_id)]

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("review_items_list_failed", workspace_id=workspace_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/review-items/{item_id}/resolve", response_model=ReviewItemOut)
def act_on_review_item(
    item_id: int,
    payload: ReviewActionPayload,
    engine: Engine = Depends(get_db_engine),
) -> ReviewItemOut:
    """
    Resolve a review item onto a booking, or dismiss it.

    Args:
        item_id: Review item id
        payload: Action plus, for `resolve`, the property and optional overrides

    Returns:
        ReviewItemOut: The updated item
    """
    try:
        if payload.action == "dismiss":
            return _item_out(dismiss_item(engine, item_id))

        if payload.property_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="property_id is required to resolve a review item",
            )
        item = resolve_item(
            engine,
            item_id,
            payload.property_id,
            guest_name=payload.guest_name,
            guest_count=payload.guest_count,
            check_in=payload.check_in,
            check_out=payload.check_out,
        )
        return _item_out(item)

    except (ReviewItemNotFoundError, NoMatchingBookingError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("review_item_action_failed", item_id=item_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

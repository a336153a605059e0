"""GET /v1/activity - Recent activity feed"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from organitto_ops.api.dependencies import get_current_actor, get_request_id, get_store
from organitto_ops.api.errors import to_http_exception
from organitto_ops.api.v1.schemas import ActivityItem, ActivityResponse
from organitto_ops.config import settings
from organitto_ops.domain.exceptions import DomainException
from organitto_ops.domain.models import Actor
from organitto_ops.infrastructure.database.repositories import RecordStore

router = APIRouter()


@router.get("/activity", response_model=ActivityResponse)
def get_activity(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=500),
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Retrieve the most recent activity entries, newest first.

    Returns:
        Human-readable descriptions of submissions, decisions and product moves
    """
    try:
        with store.transaction():
            entries = store.activity.recent(limit or settings.activity_feed_limit)
    except DomainException as e:
        raise to_http_exception(e, "activity", get_request_id(request))
    return ActivityResponse(activity=[ActivityItem.model_validate(entry) for entry in entries])

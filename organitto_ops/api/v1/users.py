"""Account review endpoints - admins approve or reject new registrations"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from organitto_ops.api.dependencies import get_current_actor, get_request_id, get_store
from organitto_ops.api.errors import to_http_exception
from organitto_ops.api.v1.schemas import AccountDecisionRequest, UserList, UserProfileResponse
from organitto_ops.domain.accounts import AccountApprovals
from organitto_ops.domain.exceptions import DomainException
from organitto_ops.domain.models import Actor, RecordStatus
from organitto_ops.infrastructure.database.repositories import RecordStore

router = APIRouter()


@router.get("/users", response_model=UserList)
def list_users(
    request: Request,
    approval_status: RecordStatus = Query(RecordStatus.PENDING),
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    try:
        profiles = AccountApprovals(store).list_by_status(approval_status, actor)
    except DomainException as e:
        raise to_http_exception(e, "list_users", get_request_id(request))
    return UserList(users=[UserProfileResponse.model_validate(p) for p in profiles])


@router.post("/users/{user_id}/approval", response_model=UserProfileResponse)
def decide_account(
    user_id: str,
    body: AccountDecisionRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """Approve or reject a pending registration; the user is notified either way"""
    request_id = get_request_id(request)
    try:
        profile = AccountApprovals(store).decide(user_id, body.decision, actor, body.rejection_reason)
    except DomainException as e:
        raise to_http_exception(e, "decide_account", request_id)

    logging.info(
        "Account reviewed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "actor_id": actor.user_id,
            "outcome": profile.approval_status.value,
        },
    )
    return UserProfileResponse.model_validate(profile)

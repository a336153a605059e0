"""Sign-up, sign-in and sign-out against the hosted identity provider"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from organitto_ops.api.dependencies import bearer_token, get_identity_client, get_request_id, get_store
from organitto_ops.api.errors import to_http_exception
from organitto_ops.api.v1.schemas import SessionResponse, SignInRequest, SignUpRequest, UserProfileResponse
from organitto_ops.domain.accounts import AccountApprovals
from organitto_ops.domain.exceptions import DomainException
from organitto_ops.domain.models import RecordStatus
from organitto_ops.infrastructure.clients.identity import IdentityClient
from organitto_ops.infrastructure.database.repositories import RecordStore

router = APIRouter()


@router.post("/auth/signup", response_model=UserProfileResponse, status_code=201)
async def sign_up(
    body: SignUpRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    identity_client: IdentityClient = Depends(get_identity_client),
):
    """Create the identity and a pending partner profile; an admin must approve it before sign-in"""
    request_id = get_request_id(request)
    try:
        identity = await identity_client.sign_up(body.email, body.password)
        profile = AccountApprovals(store).register(
            identity.user_id, body.email, body.name, phone=body.phone
        )
    except DomainException as e:
        raise to_http_exception(e, "signup", request_id)

    logging.info("Account registered", extra={"request_id": request_id, "user_id": profile.id})
    return UserProfileResponse.model_validate(profile)


@router.post("/auth/signin", response_model=SessionResponse)
async def sign_in(
    body: SignInRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    identity_client: IdentityClient = Depends(get_identity_client),
):
    """Sign in; only approved profiles receive a session"""
    request_id = get_request_id(request)
    try:
        session = await identity_client.sign_in(body.email, body.password)
        with store.transaction():
            profile = store.users.get(session.identity.user_id)
    except DomainException as e:
        raise to_http_exception(e, "signin", request_id)

    if profile is None:
        raise HTTPException(status_code=401, detail="No profile for this account")
    if profile.approval_status != RecordStatus.APPROVED:
        raise HTTPException(status_code=403, detail=f"Account {profile.approval_status.value}")

    return SessionResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        profile=UserProfileResponse.model_validate(profile),
    )


@router.post("/auth/signout", status_code=204)
async def sign_out(
    request: Request,
    token: str = Depends(bearer_token),
    identity_client: IdentityClient = Depends(get_identity_client),
):
    try:
        await identity_client.sign_out(token)
    except DomainException as e:
        raise to_http_exception(e, "signout", get_request_id(request))
    return Response(status_code=204)

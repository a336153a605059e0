"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from organitto_ops.domain.exceptions import BackendUnavailable, IdentityError
from organitto_ops.domain.models import Actor, RecordStatus
from organitto_ops.infrastructure.clients.identity import IdentityClient
from organitto_ops.infrastructure.clients.storage import BlobStoreClient
from organitto_ops.infrastructure.database.changes import ChangeFeed, change_feed
from organitto_ops.infrastructure.database.repositories import RecordStore
from organitto_ops.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_identity_client() -> IdentityClient:
    """Provide identity provider client instance"""
    return IdentityClient()


def get_blob_store() -> BlobStoreClient:
    """Provide blob store client instance"""
    return BlobStoreClient()


def get_change_feed() -> ChangeFeed:
    return change_feed


def get_store(db: Session = Depends(get_db), feed: ChangeFeed = Depends(get_change_feed)) -> RecordStore:
    """Record store unit of work bound to the request's session"""
    return RecordStore(db, feed)


def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return authorization[7:].strip()


async def get_current_actor(
    token: str = Depends(bearer_token),
    store: RecordStore = Depends(get_store),
    identity_client: IdentityClient = Depends(get_identity_client),
) -> Actor:
    """
    Resolve the acting user for this request.

    The token is checked with the identity provider and mapped to the
    application profile; only approved profiles may act.
    """
    try:
        identity = await identity_client.get_user(token)
        with store.transaction():
            profile = store.users.get(identity.user_id)
    except IdentityError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    except BackendUnavailable:
        raise HTTPException(status_code=503, detail="Service temporarily unavailable, please retry")

    if profile is None:
        raise HTTPException(status_code=401, detail="No profile for this account")
    if profile.approval_status != RecordStatus.APPROVED:
        raise HTTPException(status_code=403, detail=f"Account {profile.approval_status.value}")
    return profile.to_actor()

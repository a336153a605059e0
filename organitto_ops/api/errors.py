"""Translate domain exceptions into HTTP errors"""

import logging

from fastapi import HTTPException

from organitto_ops.domain.exceptions import (
    AuthorizationError,
    BackendUnavailable,
    DomainException,
    DuplicateRecord,
    IdentityError,
    InvalidStateTransition,
    LaunchNotConfirmed,
    RecordNotFound,
    ValidationError,
)
from organitto_ops.infrastructure.observability.metrics import record_rejection

# Most specific first: subclasses share their parent's status
_STATUS = (
    (ValidationError, 422),
    (AuthorizationError, 403),
    (InvalidStateTransition, 409),
    (DuplicateRecord, 409),
    (LaunchNotConfirmed, 428),
    (RecordNotFound, 404),
    (IdentityError, 401),
    (BackendUnavailable, 503),
)


def to_http_exception(error: DomainException, operation: str, request_id: str) -> HTTPException:
    """Log and count a refused operation, and build the matching HTTPException"""
    record_rejection(operation, error)
    for exc_type, status_code in _STATUS:
        if isinstance(error, exc_type):
            break
    else:
        status_code = 500

    if isinstance(error, BackendUnavailable):
        logging.error(f"Backend unavailable during {operation}: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail="Service temporarily unavailable, please retry")

    logging.warning(
        f"{operation} refused: {error}",
        extra={"request_id": request_id, "error": type(error).__name__},
    )
    return HTTPException(status_code=status_code, detail={"error": type(error).__name__, "message": str(error)})

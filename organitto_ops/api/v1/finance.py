"""Expense and investment endpoints - submission, approval decisions, deletion, proof uploads"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from organitto_ops.api.dependencies import get_blob_store, get_current_actor, get_request_id, get_store
from organitto_ops.api.errors import to_http_exception
from organitto_ops.api.v1.schemas import (
    DecisionRequest,
    FinancialRecordList,
    FinancialRecordResponse,
    ProofUploadResponse,
    SubmitRecordRequest,
    UpdateRecordRequest,
)
from organitto_ops.config import settings
from organitto_ops.domain.approvals import ApprovalWorkflow
from organitto_ops.domain.exceptions import DomainException, RecordNotFound
from organitto_ops.domain.models import Actor, Decision, RecordKind, RecordStatus
from organitto_ops.infrastructure.clients.storage import BlobStoreClient, proof_path
from organitto_ops.infrastructure.database.repositories import RecordStore
from organitto_ops.infrastructure.observability.logging import log_decision
from organitto_ops.infrastructure.observability.metrics import record_decision, submission_counter

router = APIRouter()


def _proof_location(kind: RecordKind) -> tuple[str, str]:
    """(bucket, folder) for a record kind's proof documents"""
    if kind == RecordKind.EXPENSE:
        return settings.proof_bucket_expenses, "bills"
    return settings.proof_bucket_investments, "payment-proofs"


@router.post("/finance/{kind}", response_model=FinancialRecordResponse, status_code=201)
def submit_record(
    kind: RecordKind,
    body: SubmitRecordRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """Submit an expense or investment; it starts pending"""
    request_id = get_request_id(request)
    try:
        record = ApprovalWorkflow(store).submit(kind=kind, submitter=actor, **body.model_dump())
    except DomainException as e:
        raise to_http_exception(e, "submit", request_id)

    submission_counter.labels(kind=kind.value).inc()
    logging.info(
        "Record submitted",
        extra={"request_id": request_id, "kind": kind.value, "record_id": record.id, "actor_id": actor.user_id},
    )
    return FinancialRecordResponse.model_validate(record)


@router.get("/finance/{kind}", response_model=FinancialRecordList)
def list_records(
    kind: RecordKind,
    request: Request,
    status: Optional[RecordStatus] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """List records newest first. Partners see their own submissions; admins see all."""
    submitter_id = None if actor.is_admin else actor.user_id
    try:
        with store.transaction():
            records = store.records.list(kind, status=status, submitter_id=submitter_id, limit=limit)
    except DomainException as e:
        raise to_http_exception(e, "list", get_request_id(request))
    return FinancialRecordList(kind=kind, records=[FinancialRecordResponse.model_validate(r) for r in records])


@router.get("/finance/{kind}/{record_id}", response_model=FinancialRecordResponse)
def get_record(
    kind: RecordKind,
    record_id: str,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    try:
        with store.transaction():
            record = store.records.get(kind, record_id)
            if record is None or (not actor.is_admin and record.submitter_id != actor.user_id):
                raise RecordNotFound(kind.value, record_id)
    except DomainException as e:
        raise to_http_exception(e, "get", get_request_id(request))
    return FinancialRecordResponse.model_validate(record)


@router.post("/finance/{kind}/{record_id}/decision", response_model=FinancialRecordResponse)
def decide_record(
    kind: RecordKind,
    record_id: str,
    body: DecisionRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Approve or reject a pending record.

    Flow:
    1. Check admin privilege and rejection reason
    2. Conditionally move the record out of pending (409 if already decided)
    3. Append the activity feed entry
    4. Record metrics and logs
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        record = ApprovalWorkflow(store).decide(
            kind=kind,
            record_id=record_id,
            decision=body.decision,
            actor=actor,
            comment=body.comment,
            rejection_reason=body.rejection_reason,
        )
    except DomainException as e:
        raise to_http_exception(e, "decide", request_id)

    duration_ms = (time.time() - start_time) * 1000
    record_decision(kind.value, body.decision == Decision.APPROVE, record.amount_cents)
    log_decision(request_id, actor.user_id, kind.value, record.id, record.status.value, duration_ms)

    return FinancialRecordResponse.model_validate(record)


@router.patch("/finance/{kind}/{record_id}", response_model=FinancialRecordResponse)
def edit_record(
    kind: RecordKind,
    record_id: str,
    body: UpdateRecordRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Correct a record that is still pending (submitter or admin).

    Not a state transition: status and decision fields cannot be set here,
    and a record that has been decided answers 409.
    """
    request_id = get_request_id(request)
    patch = body.model_dump(exclude_unset=True)
    try:
        record = ApprovalWorkflow(store).edit(kind, record_id, patch, actor)
    except DomainException as e:
        raise to_http_exception(e, "edit", request_id)

    logging.info(
        "Record edited",
        extra={
            "request_id": request_id,
            "kind": kind.value,
            "record_id": record.id,
            "actor_id": actor.user_id,
            "fields": sorted(patch),
        },
    )
    return FinancialRecordResponse.model_validate(record)


@router.delete("/finance/{kind}/{record_id}", status_code=204)
def delete_record(
    kind: RecordKind,
    record_id: str,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """Permanently delete a record in any status (admin only)"""
    request_id = get_request_id(request)
    try:
        ApprovalWorkflow(store).delete(kind, record_id, actor)
    except DomainException as e:
        raise to_http_exception(e, "delete", request_id)

    logging.info(
        "Record deleted",
        extra={"request_id": request_id, "kind": kind.value, "record_id": record_id, "actor_id": actor.user_id},
    )
    return Response(status_code=204)


@router.post("/finance/{kind}/proofs", response_model=ProofUploadResponse, status_code=201)
async def upload_proof(
    kind: RecordKind,
    request: Request,
    filename: str = Query(..., min_length=1, description="Original file name, used for the extension"),
    blob_store: BlobStoreClient = Depends(get_blob_store),
    actor: Actor = Depends(get_current_actor),
):
    """Upload a bill or payment proof as the raw request body; returns its public URL"""
    request_id = get_request_id(request)
    content = await request.body()
    content_type = request.headers.get("content-type", "application/octet-stream")
    bucket, folder = _proof_location(kind)
    path = proof_path(filename, folder)

    try:
        url = await blob_store.upload(bucket, path, content, content_type)
    except DomainException as e:
        raise to_http_exception(e, "upload_proof", request_id)

    logging.info(
        "Proof uploaded",
        extra={"request_id": request_id, "kind": kind.value, "path": path, "actor_id": actor.user_id},
    )
    return ProofUploadResponse(url=url, path=path)

"""Vendor directory endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from organitto_ops.api.dependencies import get_current_actor, get_request_id, get_store
from organitto_ops.api.errors import to_http_exception
from organitto_ops.api.v1.schemas import CreateVendorRequest, UpdateVendorRequest, VendorList, VendorResponse
from organitto_ops.domain.exceptions import DomainException
from organitto_ops.domain.models import Actor
from organitto_ops.domain.vendors import VendorDirectory
from organitto_ops.infrastructure.database.repositories import RecordStore

router = APIRouter()


@router.post("/vendors", response_model=VendorResponse, status_code=201)
def create_vendor(
    body: CreateVendorRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    request_id = get_request_id(request)
    try:
        vendor = VendorDirectory(store).create(body.model_dump(), actor)
    except DomainException as e:
        raise to_http_exception(e, "create_vendor", request_id)

    logging.info(
        "Vendor added",
        extra={"request_id": request_id, "vendor_id": vendor.id, "actor_id": actor.user_id},
    )
    return VendorResponse.model_validate(vendor)


@router.get("/vendors", response_model=VendorList)
def list_vendors(
    request: Request,
    category: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """List vendors alphabetically"""
    try:
        vendors = VendorDirectory(store).list(category=category)
    except DomainException as e:
        raise to_http_exception(e, "list_vendors", get_request_id(request))
    return VendorList(vendors=[VendorResponse.model_validate(v) for v in vendors])


@router.get("/vendors/{vendor_id}", response_model=VendorResponse)
def get_vendor(
    vendor_id: str,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    try:
        vendor = VendorDirectory(store).get(vendor_id)
    except DomainException as e:
        raise to_http_exception(e, "get_vendor", get_request_id(request))
    return VendorResponse.model_validate(vendor)


@router.patch("/vendors/{vendor_id}", response_model=VendorResponse)
def update_vendor(
    vendor_id: str,
    body: UpdateVendorRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    request_id = get_request_id(request)
    patch = body.model_dump(exclude_unset=True)
    try:
        vendor = VendorDirectory(store).update(vendor_id, patch, actor)
    except DomainException as e:
        raise to_http_exception(e, "update_vendor", request_id)

    logging.info(
        "Vendor updated",
        extra={"request_id": request_id, "vendor_id": vendor.id, "actor_id": actor.user_id, "fields": sorted(patch)},
    )
    return VendorResponse.model_validate(vendor)


@router.delete("/vendors/{vendor_id}", status_code=204)
def delete_vendor(
    vendor_id: str,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """Remove a vendor (admin only); expenses that referenced it keep no vendor"""
    request_id = get_request_id(request)
    try:
        detached = VendorDirectory(store).delete(vendor_id, actor)
    except DomainException as e:
        raise to_http_exception(e, "delete_vendor", request_id)

    logging.info(
        "Vendor deleted",
        extra={"request_id": request_id, "vendor_id": vendor_id, "actor_id": actor.user_id, "expenses_detached": detached},
    )
    return Response(status_code=204)

"""Product pipeline endpoints"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from organitto_ops.api.dependencies import get_current_actor, get_request_id, get_store
from organitto_ops.api.errors import to_http_exception
from organitto_ops.api.v1.schemas import (
    AdvanceRequest,
    CreateProductRequest,
    ProductList,
    ProductResponse,
    StageHistoryItem,
    StageHistoryResponse,
    UpdateProductRequest,
)
from organitto_ops.domain.exceptions import DomainException
from organitto_ops.domain.models import Actor, Priority, Stage
from organitto_ops.domain.pipeline import StagePipeline
from organitto_ops.infrastructure.database.repositories import RecordStore
from organitto_ops.infrastructure.observability.logging import log_stage_advance
from organitto_ops.infrastructure.observability.metrics import stage_advance_counter

router = APIRouter()


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    body: CreateProductRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """Create a product at the 'idea' stage"""
    try:
        product = StagePipeline(store).create(creator=actor, **body.model_dump())
    except DomainException as e:
        raise to_http_exception(e, "create_product", get_request_id(request))
    return ProductResponse.model_validate(product)


@router.get("/products", response_model=ProductList)
def list_products(
    request: Request,
    stage: Optional[Stage] = Query(None),
    priority: Optional[Priority] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    try:
        with store.transaction():
            products = store.products.list(stage=stage, priority=priority, limit=limit)
    except DomainException as e:
        raise to_http_exception(e, "list_products", get_request_id(request))
    return ProductList(products=[ProductResponse.model_validate(p) for p in products])


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: str,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    try:
        with store.transaction():
            product = store.products.get(product_id)
    except DomainException as e:
        raise to_http_exception(e, "get_product", get_request_id(request))
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductResponse.model_validate(product)


@router.post("/products/{product_id}/advance", response_model=ProductResponse)
def advance_product(
    product_id: str,
    request: Request,
    body: Optional[AdvanceRequest] = None,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Move a product to the next stage.

    The move into 'launched' needs `confirm_launch: true`; without it the
    call answers 428 and nothing changes.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    confirmed = body is not None and body.confirm_launch
    try:
        product = StagePipeline(store).advance(product_id, actor, confirm_launch=confirmed)
    except DomainException as e:
        raise to_http_exception(e, "advance", request_id)

    stage_advance_counter.labels(stage=product.current_stage.value).inc()
    log_stage_advance(
        request_id, actor.user_id, product.id, product.current_stage.value, (time.time() - start_time) * 1000
    )
    return ProductResponse.model_validate(product)


@router.patch("/products/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    body: UpdateProductRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Administrative override ("Edit Product").

    Sets fields directly, including stage and progress, without pipeline
    ordering and without stage history. Use /advance for normal progression.
    """
    request_id = get_request_id(request)
    patch = body.model_dump(exclude_unset=True)
    try:
        product = StagePipeline(store).update_product(product_id, patch, actor)
    except DomainException as e:
        raise to_http_exception(e, "update_product", request_id)

    logging.info(
        "Product override applied",
        extra={"request_id": request_id, "product_id": product.id, "actor_id": actor.user_id, "fields": sorted(patch)},
    )
    return ProductResponse.model_validate(product)


@router.get("/products/{product_id}/history", response_model=StageHistoryResponse)
def get_stage_history(
    product_id: str,
    request: Request,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    try:
        entries = StagePipeline(store).history(product_id)
    except DomainException as e:
        raise to_http_exception(e, "history", get_request_id(request))
    return StageHistoryResponse(
        product_id=product_id,
        entries=[StageHistoryItem.model_validate(entry) for entry in entries],
    )

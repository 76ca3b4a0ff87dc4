# content_review/routers/review.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, Query

from content_review.core.config import Settings, get_settings
from content_review.core.errors import ApiError
from content_review.schemas.review import ReviewDecision, ReviewDecisionIn
from content_review.services import store
from content_review.services.aggregator import list_across_brands, summarize
from content_review.services.approval_service import (
    SYSTEM_REVIEWER,
    annotate,
    approve_item,
    count_queue,
    get_pending_item,
    ingest_generation,
    list_queue,
    reject_item,
)

router = APIRouter(prefix="/api/agents/review", tags=["review"])


def reviewer_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    # identity comes from the auth layer; we only need an opaque id
    return (x_user_id or "").strip() or SYSTEM_REVIEWER


def _decision_response(decision: ReviewDecision) -> Dict[str, Any]:
    return {
        "success": True,
        "item_id": decision.item_id,
        "outcome": decision.outcome,
        "decision": decision.model_dump(mode="json"),
    }


@router.get("/queue/{brand_id}")
def review_queue(brand_id: str, limit: Optional[int] = Query(default=None, ge=1, le=1000), settings: Settings = Depends(get_settings)):
    items = list_queue(settings, brand_id, limit=limit)
    # count is this page, total is everything still pending for the brand
    return {
        "brand_id": brand_id,
        "items": [it.model_dump(mode="json") for it in items],
        "count": len(items),
        "total": count_queue(settings, brand_id),
    }


@router.get("/queues")
def review_queues(brand_ids: List[str] = Query(default=[]), settings: Settings = Depends(get_settings)):
    if not brand_ids:
        raise ApiError(400, "invalid_request_error", "brand_ids is required", param="brand_ids")

    results = list_across_brands(
        brand_ids,
        fetch=lambda b: list_queue(settings, b),
        max_brands=settings.aggregator_max_brands,
    )
    return {
        "brands": {b: res.to_dict() for b, res in results.items()},
        "summary": summarize(results, settings.bfs_pass_threshold),
    }


@router.post("/items", status_code=201)
def review_enqueue(body: Dict[str, Any] = Body(...), settings: Settings = Depends(get_settings)):
    item, disposition, decision = ingest_generation(settings, body)
    return {
        "success": True,
        "item": annotate(item, settings.bfs_pass_threshold).model_dump(mode="json"),
        "disposition": disposition.value,
        "auto_decision": decision.model_dump(mode="json") if decision else None,
    }


@router.get("/items/{item_id}")
def review_get(item_id: str, settings: Settings = Depends(get_settings)):
    item = get_pending_item(settings, item_id)
    return annotate(item, settings.bfs_pass_threshold).model_dump(mode="json")


@router.post("/approve/{item_id}")
def review_approve(
    item_id: str,
    body: Optional[ReviewDecisionIn] = None,
    reviewer: str = Depends(reviewer_id),
    settings: Settings = Depends(get_settings),
):
    notes = body.reviewer_notes if body else None
    return _decision_response(approve_item(settings, item_id, reviewer_id=reviewer, reviewer_notes=notes))


@router.post("/reject/{item_id}")
def review_reject(
    item_id: str,
    body: Optional[ReviewDecisionIn] = None,
    reviewer: str = Depends(reviewer_id),
    settings: Settings = Depends(get_settings),
):
    notes = body.reviewer_notes if body else None
    return _decision_response(reject_item(settings, item_id, reviewer_id=reviewer, reviewer_notes=notes))


@router.get("/decisions/{brand_id}")
def review_decisions(brand_id: str, limit: int = Query(default=200, ge=1, le=1000), settings: Settings = Depends(get_settings)):
    items = store.list_decisions(settings.abs_sqlite_path(), brand_id, limit=limit, timeout_s=settings.store_timeout_s)
    return {"brand_id": brand_id, "items": [d.model_dump(mode="json") for d in items], "count": len(items)}


@router.get("/summary/{brand_id}")
def review_summary(brand_id: str, settings: Settings = Depends(get_settings)):
    return store.decision_summary(settings.abs_sqlite_path(), brand_id, timeout_s=settings.store_timeout_s)

# content_review/services/approval_service.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from content_review.core.config import Settings
from content_review.core.errors import ApprovalForbiddenError, ItemValidationError, NotFoundError
from content_review.core.logging import get_logger, json_log
from content_review.schemas.review import Outcome, ReviewDecision, ReviewItem, ReviewItemIn, ReviewItemOut
from content_review.schemas.scoring import DEFAULT_PASS_THRESHOLD, Disposition
from content_review.services import store
from content_review.services.decision_engine import can_override, evaluate

SYSTEM_REVIEWER = "system"


def _new_item_id() -> str:
    return f"item_{uuid.uuid4().hex}"


def _new_decision_id() -> str:
    return f"dec_{uuid.uuid4().hex}"


# -------------------------
# Ingestion
# -------------------------
@dataclass
class IngestResult:
    item: Optional[ReviewItem] = None
    error: Optional[ItemValidationError] = None

    @property
    def ok(self) -> bool:
        return self.item is not None and self.error is None

    def unwrap(self) -> ReviewItem:
        if self.error is not None:
            raise self.error
        assert self.item is not None
        return self.item


def parse_generation(raw: Dict[str, Any], pass_threshold: float = DEFAULT_PASS_THRESHOLD) -> IngestResult:
    """
    Validating parse of generator output into a ReviewItem.
    Never substitutes defaults for missing score fields: a partial BFS or
    linter payload is a validation error, a missing one means "unscored".
    """
    try:
        body = ReviewItemIn.model_validate(raw, context={"pass_threshold": pass_threshold})
    except ValidationError as e:
        return IngestResult(
            error=ItemValidationError(
                "Invalid review item payload.",
                errors=e.errors(include_url=False, include_context=False, include_input=False),
                item_id=raw.get("id") if isinstance(raw, dict) else None,
            )
        )

    res = body.result
    item = ReviewItem(
        id=body.id or _new_item_id(),
        brand_id=body.brand_id,
        agent_kind=body.agent_kind,
        input=body.input,
        output=res.output,
        fidelity_score=res.bfs,
        compliance_result=res.linter_results,
        generation_error=res.error,
    )
    return IngestResult(item=item)


def ingest_generation(
    settings: Settings,
    raw: Dict[str, Any],
) -> Tuple[ReviewItem, Disposition, Optional[ReviewDecision]]:
    """
    Parses and enqueues one generation. With auto approval enabled, an
    AUTO_APPROVABLE item is decided right away through the same atomic path.
    """
    item = parse_generation(raw, settings.bfs_pass_threshold).unwrap()
    disposition, reason_codes = evaluate(item, settings.bfs_pass_threshold)

    store.enqueue_item(settings.abs_sqlite_path(), item, timeout_s=settings.store_timeout_s)
    json_log(
        get_logger(),
        {
            "event": "review_item_enqueued",
            "item_id": item.id,
            "brand_id": item.brand_id,
            "agent_kind": item.agent_kind.value,
            "disposition": disposition.value,
            "reason_codes": reason_codes,
        },
    )

    decision: Optional[ReviewDecision] = None
    if (
        settings.auto_approve_enabled
        and disposition == Disposition.AUTO_APPROVABLE
        and _approval_refusal(settings, item, "approved", disposition) is None
    ):
        decision = _record(settings, item, "approved", disposition, SYSTEM_REVIEWER, "auto-approved")

    return item, disposition, decision


# -------------------------
# Queue reads
# -------------------------
def annotate(item: ReviewItem, pass_threshold: float = DEFAULT_PASS_THRESHOLD) -> ReviewItemOut:
    disposition, reason_codes = evaluate(item, pass_threshold)
    return ReviewItemOut.model_validate(
        {**item.model_dump(), "disposition": disposition, "reason_codes": reason_codes},
        context={"pass_threshold": pass_threshold},
    )


def list_queue(settings: Settings, brand_id: str, limit: Optional[int] = None) -> List[ReviewItemOut]:
    items = store.list_pending(
        settings.abs_sqlite_path(),
        brand_id,
        limit=limit or settings.queue_limit,
        timeout_s=settings.store_timeout_s,
    )
    return [annotate(it, settings.bfs_pass_threshold) for it in items]


def count_queue(settings: Settings, brand_id: str) -> int:
    return store.count_pending(settings.abs_sqlite_path(), brand_id, timeout_s=settings.store_timeout_s)


def get_pending_item(settings: Settings, item_id: str) -> ReviewItem:
    item = store.get_item(settings.abs_sqlite_path(), item_id, timeout_s=settings.store_timeout_s)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found or already decided.", item_id=item_id)
    return item


# -------------------------
# Decisions
# -------------------------
def _record(
    settings: Settings,
    item: ReviewItem,
    outcome: Outcome,
    disposition: Disposition,
    reviewer_id: str,
    reviewer_notes: Optional[str],
) -> ReviewDecision:
    decision = ReviewDecision(
        id=_new_decision_id(),
        item_id=item.id,
        brand_id=item.brand_id,
        outcome=outcome,
        reviewer_id=reviewer_id,
        reviewer_notes=reviewer_notes,
        disposition=disposition,
    )
    store.remove_and_record(settings.abs_sqlite_path(), item, decision, timeout_s=settings.store_timeout_s)

    json_log(
        get_logger(),
        {
            "event": "review_decision",
            "decision_id": decision.id,
            "item_id": item.id,
            "brand_id": item.brand_id,
            "outcome": outcome,
            "disposition": disposition.value,
            "reviewer_id": reviewer_id,
        },
    )
    return decision


def _approval_refusal(
    settings: Settings,
    item: ReviewItem,
    outcome: Outcome,
    disposition: Disposition,
) -> Optional[str]:
    """Reason an outcome may not be recorded for this item, or None when it may."""
    if not can_override(disposition, outcome):
        return "Item is blocked by the compliance check; reject it or request regeneration."
    if outcome == "approved" and item.generation_error and not settings.allow_approve_failed_generation:
        return "Generation failed for this item; reject it and re-enqueue replacement content."
    return None


def _decide(
    settings: Settings,
    item_id: str,
    outcome: Outcome,
    reviewer_id: str,
    reviewer_notes: Optional[str],
) -> ReviewDecision:
    item = get_pending_item(settings, item_id)
    disposition, reason_codes = evaluate(item, settings.bfs_pass_threshold)

    refusal = _approval_refusal(settings, item, outcome, disposition)
    if refusal is not None:
        json_log(
            get_logger(),
            {
                "event": "approval_forbidden",
                "item_id": item.id,
                "brand_id": item.brand_id,
                "reviewer_id": reviewer_id,
                "reason_codes": reason_codes,
            },
        )
        raise ApprovalForbiddenError(refusal, item_id=item.id)

    return _record(settings, item, outcome, disposition, reviewer_id, reviewer_notes)


def approve_item(
    settings: Settings,
    item_id: str,
    reviewer_id: str = SYSTEM_REVIEWER,
    reviewer_notes: Optional[str] = None,
) -> ReviewDecision:
    return _decide(settings, item_id, "approved", reviewer_id, reviewer_notes)


def reject_item(
    settings: Settings,
    item_id: str,
    reviewer_id: str = SYSTEM_REVIEWER,
    reviewer_notes: Optional[str] = None,
) -> ReviewDecision:
    return _decide(settings, item_id, "rejected", reviewer_id, reviewer_notes)

# content_review/services/aggregator.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from content_review.core.logging import get_logger, json_log
from content_review.schemas.review import ReviewItem
from content_review.schemas.scoring import DEFAULT_PASS_THRESHOLD, Disposition
from content_review.services.decision_engine import classify

QueueFetcher = Callable[[str], List[ReviewItem]]


@dataclass
class BrandQueueResult:
    brand_id: str
    items: List[ReviewItem] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            return {"brand_id": self.brand_id, "status": "error", "error": self.error, "error_type": self.error_type}
        return {
            "brand_id": self.brand_id,
            "status": "ok" if self.items else "empty",
            "count": len(self.items),
            "items": [it.model_dump(mode="json") for it in self.items],
        }


def _unique(brand_ids: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for b in brand_ids:
        b = str(b).strip()
        if b and b not in seen:
            seen.add(b)
            out.append(b)
    return out


def list_across_brands(
    brand_ids: Iterable[str],
    fetch: QueueFetcher,
    max_brands: Optional[int] = None,
) -> Dict[str, BrandQueueResult]:
    """
    Fetches each brand's queue independently, in request order.
    A brand whose fetch raises gets an error entry; the others are unaffected.
    Brands past `max_brands` are not fetched and get a LimitExceeded entry.
    """
    ids = _unique(brand_ids)
    over: List[str] = []
    if max_brands is not None:
        cap = max(0, int(max_brands))
        ids, over = ids[:cap], ids[cap:]

    results: Dict[str, BrandQueueResult] = {}
    for brand_id in ids:
        try:
            results[brand_id] = BrandQueueResult(brand_id=brand_id, items=list(fetch(brand_id)))
        except Exception as e:
            json_log(
                get_logger(),
                {"event": "brand_queue_fetch_failed", "brand_id": brand_id, "error": f"{type(e).__name__}: {e}"},
                level=logging.WARNING,
            )
            results[brand_id] = BrandQueueResult(
                brand_id=brand_id,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )

    for brand_id in over:
        results[brand_id] = BrandQueueResult(
            brand_id=brand_id,
            error=f"brand limit exceeded (max {max_brands} per request)",
            error_type="LimitExceeded",
        )
    if over:
        json_log(
            get_logger(),
            {"event": "brand_queue_limit_exceeded", "max_brands": max_brands, "skipped": over},
            level=logging.WARNING,
        )
    return results


def summarize(results: Dict[str, BrandQueueResult], pass_threshold: float = DEFAULT_PASS_THRESHOLD) -> Dict[str, Any]:
    by_disposition = {d.value: 0 for d in Disposition}
    pending_by_brand: Dict[str, int] = {}
    failed: List[str] = []

    for brand_id, res in results.items():
        if not res.ok:
            failed.append(brand_id)
            continue
        pending_by_brand[brand_id] = len(res.items)
        for it in res.items:
            by_disposition[classify(it, pass_threshold).value] += 1

    return {
        "brands_total": len(results),
        "brands_failed": failed,
        "pending_total": sum(pending_by_brand.values()),
        "pending_by_brand": pending_by_brand,
        "pending_by_disposition": by_disposition,
    }

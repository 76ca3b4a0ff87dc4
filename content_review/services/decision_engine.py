# content_review/services/decision_engine.py
from __future__ import annotations

import math
from typing import List, Optional, Tuple

from content_review.schemas.review import Outcome, ReviewItem
from content_review.schemas.scoring import DEFAULT_PASS_THRESHOLD, Disposition


def _overall(item: ReviewItem) -> Optional[float]:
    """
    Returns the BFS overall score, None when unscored.
    Raises ValueError on anything that is not a finite number in [0, 1].
    """
    if item.fidelity_score is None:
        return None
    val = float(item.fidelity_score.overall)
    if not math.isfinite(val) or val < 0.0 or val > 1.0:
        raise ValueError(f"overall out of range: {val!r}")
    return val


def evaluate(item: ReviewItem, pass_threshold: float = DEFAULT_PASS_THRESHOLD) -> Tuple[Disposition, List[str]]:
    """
    Disposition policy (first match wins):
    - linter hard block -> BLOCKED
    - linter asks for a human, or BFS below threshold -> NEEDS_HUMAN_REVIEW
    - no BFS at all -> NEEDS_HUMAN_REVIEW (unscored content is never auto-approved)
    - otherwise -> AUTO_APPROVABLE
    Malformed score data lands in NEEDS_HUMAN_REVIEW instead of raising.
    """
    linter = item.compliance_result

    if linter is not None and linter.blocked:
        return Disposition.BLOCKED, ["linter_blocked"]

    try:
        overall = _overall(item)
    except (TypeError, ValueError):
        return Disposition.NEEDS_HUMAN_REVIEW, ["malformed_scores"]

    reason_codes: List[str] = []
    if linter is not None and linter.needs_human_review:
        reason_codes.append("linter_needs_review")
    if overall is not None and overall < pass_threshold:
        reason_codes.append("bfs_below_threshold")
    if reason_codes:
        return Disposition.NEEDS_HUMAN_REVIEW, reason_codes

    if overall is None:
        if item.generation_error:
            return Disposition.NEEDS_HUMAN_REVIEW, ["generation_failed"]
        return Disposition.NEEDS_HUMAN_REVIEW, ["unscored"]

    return Disposition.AUTO_APPROVABLE, []


def classify(item: ReviewItem, pass_threshold: float = DEFAULT_PASS_THRESHOLD) -> Disposition:
    disposition, _ = evaluate(item, pass_threshold)
    return disposition


def can_override(disposition: Disposition, outcome: Outcome) -> bool:
    # rejection is always allowed; a safety block can never be approved by hand
    if outcome == "rejected":
        return True
    return disposition != Disposition.BLOCKED

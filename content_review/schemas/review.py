# content_review/schemas/review.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from content_review.schemas.scoring import BrandFidelityScore, Disposition, LinterResult

Outcome = Literal["approved", "rejected"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentKind(str, Enum):
    DOC = "doc"
    DESIGN = "design"
    ADVISOR = "advisor"


class GenerationResultIn(BaseModel):
    """
    What a generator hands back per request. Only the scores are interpreted here.
    """
    model_config = ConfigDict(extra="ignore")

    output: Optional[Any] = None
    bfs: Optional[BrandFidelityScore] = None
    linter_results: Optional[LinterResult] = None
    error: Optional[str] = None


class ReviewItemIn(BaseModel):
    """
    Input schema for POST /api/agents/review/items
    """
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = Field(default=None, min_length=1)
    brand_id: str = Field(min_length=1)
    agent_kind: AgentKind
    input: Dict[str, Any] = {}
    result: GenerationResultIn


class ReviewItem(BaseModel):
    id: str = Field(min_length=1)
    object: Literal["review_item"] = "review_item"

    brand_id: str = Field(min_length=1)
    agent_kind: AgentKind

    # opaque to the pipeline
    input: Dict[str, Any] = {}
    output: Optional[Any] = None

    fidelity_score: Optional[BrandFidelityScore] = None
    compliance_result: Optional[LinterResult] = None
    generation_error: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)


class ReviewItemOut(ReviewItem):
    # computed at read time, never stored
    disposition: Disposition
    reason_codes: List[str] = []


class ReviewDecisionIn(BaseModel):
    reviewer_notes: Optional[str] = None


class ReviewDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    object: Literal["review_decision"] = "review_decision"

    item_id: str
    brand_id: str
    outcome: Outcome
    reviewer_id: str
    reviewer_notes: Optional[str] = None
    disposition: Disposition
    decided_at: datetime = Field(default_factory=utcnow)

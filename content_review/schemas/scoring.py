# content_review/schemas/scoring.py
from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

DEFAULT_PASS_THRESHOLD = 0.8

UnitScore = Annotated[float, Field(ge=0.0, le=1.0)]


class Disposition(str, Enum):
    AUTO_APPROVABLE = "auto_approvable"
    NEEDS_HUMAN_REVIEW = "needs_human_review"
    BLOCKED = "blocked"


class BrandFidelityScore(BaseModel):
    """
    Brand Fidelity Score (BFS) as produced by the upstream scorer.
    Sub-scores are weighted upstream; the pipeline only reads `overall`.

    `passed` always follows `overall`. The threshold comes from the validation
    context (`pass_threshold`); a context threshold of None keeps a flag that
    was already derived, e.g. when reloading a stored item.
    """
    model_config = ConfigDict(allow_inf_nan=False, extra="ignore")

    overall: UnitScore
    tone_alignment: UnitScore
    terminology_match: UnitScore
    compliance: UnitScore
    cta_fit: UnitScore
    platform_fit: UnitScore

    passed: bool = False
    issues: List[str] = []
    regeneration_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _derive_passed(self, info: ValidationInfo) -> "BrandFidelityScore":
        threshold = (info.context or {}).get("pass_threshold", DEFAULT_PASS_THRESHOLD)
        if threshold is not None:
            self.passed = fidelity_passed(self, threshold)
        return self


class PlatformViolation(BaseModel):
    platform: str
    issue: Literal["char_limit", "hashtag_limit", "aspect_ratio", "file_size"]
    current: float
    limit: float
    suggestion: str = ""


class LinterResult(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False, extra="ignore")

    passed: bool
    profanity_detected: bool = False
    toxicity_score: UnitScore
    blocked: bool
    needs_human_review: bool
    fixes_applied: List[str] = []

    # findings
    banned_phrases_found: List[str] = []
    banned_claims_found: List[str] = []
    missing_disclaimers: List[str] = []
    missing_hashtags: List[str] = []
    pii_detected: List[str] = []
    competitor_mentions: List[str] = []
    platform_violations: List[PlatformViolation] = []

    @model_validator(mode="after")
    def _blocked_never_passes(self) -> "LinterResult":
        # a hard safety block always wins over the upstream passed flag
        if self.blocked:
            self.passed = False
        return self


def fidelity_passed(score: BrandFidelityScore, threshold: float = DEFAULT_PASS_THRESHOLD) -> bool:
    return score.overall >= threshold

# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# now imports work
from content_review.main import app  # noqa


from typing import Any, Callable, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from content_review.core.config import get_settings, Settings
from content_review.schemas.review import AgentKind, ReviewItem
from content_review.schemas.scoring import BrandFidelityScore, LinterResult
from content_review.services import store as store_mod


def bfs_dict(overall: float = 0.9, **overrides: Any) -> Dict[str, Any]:
    d = {
        "overall": overall,
        "tone_alignment": overall,
        "terminology_match": overall,
        "compliance": overall,
        "cta_fit": overall,
        "platform_fit": overall,
        "passed": overall >= 0.8,
        "issues": [],
        "regeneration_count": 0,
    }
    d.update(overrides)
    return d


def linter_dict(blocked: bool = False, needs_human_review: bool = False, **overrides: Any) -> Dict[str, Any]:
    d = {
        "passed": not blocked and not needs_human_review,
        "profanity_detected": False,
        "toxicity_score": 0.9 if blocked else 0.05,
        "blocked": blocked,
        "needs_human_review": needs_human_review,
        "fixes_applied": [],
        "banned_phrases_found": [],
        "banned_claims_found": [],
        "missing_disclaimers": [],
        "missing_hashtags": [],
        "pii_detected": [],
        "competitor_mentions": [],
        "platform_violations": [],
    }
    d.update(overrides)
    return d


@pytest.fixture()
def tmp_repo(tmp_path: Path) -> Path:
    """
    Create a temp repo-like structure so tests don't touch the real store.
    """
    (tmp_path / "artifacts" / "stores").mkdir(parents=True, exist_ok=True)
    (tmp_path / "logs").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(tmp_repo: Path) -> Settings:
    """
    Override Settings so API + services use temp paths.
    """
    s = Settings(repo_root=str(tmp_repo))
    s.logs_dir = "logs"
    s.sqlite_path = "artifacts/stores/review_store.sqlite"
    s.log_path = "logs/review_api.jsonl"
    s.bfs_pass_threshold = 0.8
    s.auto_approve_enabled = False
    s.allow_approve_failed_generation = False
    return s


@pytest.fixture()
def client(test_settings: Settings):
    """
    FastAPI client with dependency override.
    """
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def sqlite_path(test_settings: Settings) -> Path:
    return test_settings.abs_sqlite_path()


@pytest.fixture()
def init_test_db(sqlite_path: Path) -> Path:
    store_mod.init_db(sqlite_path)
    return sqlite_path


@pytest.fixture()
def make_item() -> Callable[..., ReviewItem]:
    counter = {"n": 0}

    def _make(
        brand_id: str = "brand_a",
        overall: Optional[float] = 0.9,
        blocked: Optional[bool] = False,
        needs_human_review: bool = False,
        generation_error: Optional[str] = None,
        item_id: Optional[str] = None,
        agent_kind: AgentKind = AgentKind.DOC,
    ) -> ReviewItem:
        counter["n"] += 1
        return ReviewItem(
            id=item_id or f"item_{counter['n']:04d}",
            brand_id=brand_id,
            agent_kind=agent_kind,
            input={"topic": "spring launch", "platform": "instagram"},
            output={"headline": "Fresh picks for spring", "body": "Come see what's new."},
            fidelity_score=BrandFidelityScore(**bfs_dict(overall)) if overall is not None else None,
            compliance_result=(
                LinterResult(**linter_dict(blocked=blocked, needs_human_review=needs_human_review))
                if blocked is not None
                else None
            ),
            generation_error=generation_error,
        )

    return _make


@pytest.fixture()
def enqueue(sqlite_path: Path) -> Callable[[ReviewItem], ReviewItem]:
    def _enqueue(item: ReviewItem) -> ReviewItem:
        return store_mod.enqueue_item(sqlite_path, item)

    return _enqueue


@pytest.fixture()
def bfs() -> Callable[..., Dict[str, Any]]:
    return bfs_dict


@pytest.fixture()
def linter() -> Callable[..., Dict[str, Any]]:
    return linter_dict

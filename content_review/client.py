# content_review/client.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence

import requests

from content_review.core.config import Settings, get_settings

RETRYABLE_STATUS = {502, 503, 504}

QueueState = Literal["loaded", "empty", "error"]


@dataclass
class QueueView:
    """
    What a reviewer screen renders. "empty" and "error" are different states
    and must never be shown the same way.
    """
    state: QueueState
    items: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class DecisionResult:
    success: bool
    already_resolved: bool = False
    decision: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    code: Optional[str] = None


def _error_message(r: requests.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return f"HTTP {r.status_code}"
    err = data.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or err.get("code") or f"HTTP {r.status_code}")
    return str(err or f"HTTP {r.status_code}")


def _request(method: str, url: str, settings: Settings, **kwargs) -> requests.Response:
    """
    Retries timeouts, connection errors and 502/503/504 with linear backoff.
    The last response (or exception) is returned to the caller.
    """
    attempts = max(1, int(settings.api_max_retries) + 1)
    for attempt in range(attempts):
        last = attempt == attempts - 1
        try:
            r = requests.request(method, url, timeout=settings.api_timeout_s, **kwargs)
        except (requests.Timeout, requests.ConnectionError):
            if last:
                raise
        else:
            if r.status_code not in RETRYABLE_STATUS or last:
                return r
        time.sleep(settings.api_backoff_s * (attempt + 1))
    raise RuntimeError("unreachable")


def api_get_review_queue(brand_id: str, settings: Optional[Settings] = None) -> QueueView:
    settings = settings or get_settings()
    try:
        r = _request("GET", f"{settings.api_base}/api/agents/review/queue/{brand_id}", settings)
    except requests.RequestException as e:
        return QueueView(state="error", error=f"{type(e).__name__}: {e}")

    if r.status_code != 200:
        return QueueView(state="error", error=_error_message(r))

    items = r.json().get("items", [])
    return QueueView(state="loaded" if items else "empty", items=items)


def api_get_review_queues(brand_ids: Sequence[str], settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    r = _request(
        "GET",
        f"{settings.api_base}/api/agents/review/queues",
        settings,
        params={"brand_ids": list(brand_ids)},
    )
    r.raise_for_status()
    return r.json()


def _decide(action: str, item_id: str, reviewer_id: str, notes: Optional[str], settings: Settings) -> DecisionResult:
    url = f"{settings.api_base}/api/agents/review/{action}/{item_id}"
    try:
        r = _request(
            "POST",
            url,
            settings,
            json={"reviewer_notes": notes},
            headers={"X-User-Id": reviewer_id},
        )
    except requests.RequestException as e:
        # outcome unknown; a later retry answers 404 if this call did land
        return DecisionResult(success=False, error=f"{type(e).__name__}: {e}")

    if r.status_code == 200:
        return DecisionResult(success=True, decision=r.json().get("decision"))

    data: Dict[str, Any] = {}
    try:
        data = r.json()
    except ValueError:
        pass

    if r.status_code == 404:
        # someone else (or our own timed-out retry) already decided it
        return DecisionResult(success=False, already_resolved=True, error=_error_message(r), code=data.get("code"))

    return DecisionResult(success=False, error=_error_message(r), code=data.get("code"))


def api_approve(item_id: str, reviewer_id: str, notes: Optional[str] = None, settings: Optional[Settings] = None) -> DecisionResult:
    return _decide("approve", item_id, reviewer_id, notes, settings or get_settings())


def api_reject(item_id: str, reviewer_id: str, notes: Optional[str] = None, settings: Optional[Settings] = None) -> DecisionResult:
    return _decide("reject", item_id, reviewer_id, notes, settings or get_settings())

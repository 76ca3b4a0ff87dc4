#tests/integration/test_api_review_flow.py
from __future__ import annotations

from content_review.services import approval_service


def _enqueue(client, bfs, linter, item_id, brand_id="brand_a", overall=0.9, blocked=False, **result):
    body = {
        "id": item_id,
        "brand_id": brand_id,
        "agent_kind": "doc",
        "input": {"topic": "spring launch"},
        "result": {
            "output": {"body": "Fresh picks for spring"},
            "bfs": bfs(overall),
            "linter_results": linter(blocked=blocked),
            **result,
        },
    }
    r = client.post("/api/agents/review/items", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def test_queue_approve_flow(client, bfs, linter):
    # 1) Enqueue an auto-approvable item
    out = _enqueue(client, bfs, linter, "item_flow_1", overall=0.85)
    assert out["disposition"] == "auto_approvable"
    assert out["auto_decision"] is None

    # 2) Queue should contain it
    q = client.get("/api/agents/review/queue/brand_a")
    assert q.status_code == 200, q.text
    items = q.json()["items"]
    assert [it["id"] for it in items] == ["item_flow_1"]
    assert items[0]["disposition"] == "auto_approvable"

    # 3) Approve with reviewer attribution
    a = client.post(
        "/api/agents/review/approve/item_flow_1",
        json={"reviewer_notes": "on brand"},
        headers={"X-User-Id": "reviewer_42"},
    )
    assert a.status_code == 200, a.text
    data = a.json()
    assert data["success"] is True
    assert data["outcome"] == "approved"
    assert data["decision"]["reviewer_id"] == "reviewer_42"
    assert data["decision"]["reviewer_notes"] == "on brand"

    # 4) Gone from the queue, present in the audit log
    assert client.get("/api/agents/review/queue/brand_a").json()["items"] == []
    log = client.get("/api/agents/review/decisions/brand_a").json()
    assert [d["item_id"] for d in log["items"]] == ["item_flow_1"]

    # 5) Retry of the same approval reports "already decided"
    again = client.post("/api/agents/review/approve/item_flow_1", json={})
    assert again.status_code == 404
    assert again.json() == {
        "success": False,
        "error": "Item item_flow_1 not found or already decided.",
        "code": "resource_missing",
        "item_id": "item_flow_1",
    }


def test_blocked_item_cannot_be_approved_but_can_be_rejected(client, bfs, linter):
    _enqueue(client, bfs, linter, "item_blocked", overall=0.95, blocked=True)

    a = client.post("/api/agents/review/approve/item_blocked")
    assert a.status_code == 409
    assert a.json()["code"] == "approval_forbidden"
    assert a.json()["success"] is False

    r = client.post("/api/agents/review/reject/item_blocked", json={"reviewer_notes": "unsafe claim"})
    assert r.status_code == 200, r.text
    assert r.json()["decision"]["disposition"] == "blocked"
    assert r.json()["decision"]["reviewer_id"] == approval_service.SYSTEM_REVIEWER


def test_low_score_item_override_and_reject(client, bfs, linter):
    _enqueue(client, bfs, linter, "item_low_a", overall=0.5)
    _enqueue(client, bfs, linter, "item_low_b", overall=0.5)

    item = client.get("/api/agents/review/items/item_low_a").json()
    assert item["disposition"] == "needs_human_review"
    assert item["reason_codes"] == ["bfs_below_threshold"]

    assert client.post("/api/agents/review/approve/item_low_a").json()["success"] is True
    assert client.post("/api/agents/review/reject/item_low_b").json()["success"] is True

    summary = client.get("/api/agents/review/summary/brand_a").json()
    assert summary["decisions_by_outcome"] == {"approved": 1, "rejected": 1}
    assert summary["pending_total"] == 0


def test_failed_generation_is_queued_and_only_rejectable(client):
    body = {"id": "item_err", "brand_id": "brand_a", "agent_kind": "design", "result": {"error": "renderer crashed"}}
    r = client.post("/api/agents/review/items", json=body)
    assert r.status_code == 201, r.text
    assert r.json()["disposition"] == "needs_human_review"
    assert r.json()["item"]["reason_codes"] == ["generation_failed"]

    assert client.post("/api/agents/review/approve/item_err").status_code == 409
    assert client.post("/api/agents/review/reject/item_err").status_code == 200


def test_duplicate_enqueue_conflict(client, bfs, linter):
    _enqueue(client, bfs, linter, "item_twice")
    body = {"id": "item_twice", "brand_id": "brand_a", "agent_kind": "doc", "result": {"bfs": bfs(0.9)}}
    r = client.post("/api/agents/review/items", json=body)
    assert r.status_code == 409
    assert r.json()["code"] == "duplicate_item"


def test_queue_is_fifo(client, bfs, linter):
    for item_id in ("item_c", "item_a", "item_b"):
        _enqueue(client, bfs, linter, item_id)
    items = client.get("/api/agents/review/queue/brand_a").json()["items"]
    assert [it["id"] for it in items] == ["item_c", "item_a", "item_b"]


def test_multi_brand_view_with_failing_brand(client, bfs, linter, monkeypatch):
    _enqueue(client, bfs, linter, "item_a1", brand_id="A")
    _enqueue(client, bfs, linter, "item_a2", brand_id="A", blocked=True)

    real_list_queue = approval_service.list_queue

    def flaky_list_queue(settings, brand_id, limit=None):
        if brand_id == "B":
            raise RuntimeError("brand B shard offline")
        return real_list_queue(settings, brand_id, limit=limit)

    from content_review.routers import review as review_router

    monkeypatch.setattr(review_router, "list_queue", flaky_list_queue)

    r = client.get("/api/agents/review/queues", params=[("brand_ids", "A"), ("brand_ids", "B")])
    assert r.status_code == 200, r.text
    data = r.json()

    assert data["brands"]["A"]["status"] == "ok"
    assert [it["id"] for it in data["brands"]["A"]["items"]] == ["item_a1", "item_a2"]
    assert data["brands"]["B"]["status"] == "error"
    assert data["brands"]["B"]["error"] == "brand B shard offline"
    assert data["summary"]["brands_failed"] == ["B"]
    assert data["summary"]["pending_by_disposition"]["blocked"] == 1


def test_auto_approve_on_ingest(client, test_settings, bfs, linter):
    test_settings.auto_approve_enabled = True
    out = _enqueue(client, bfs, linter, "item_auto", overall=0.92)
    assert out["auto_decision"]["outcome"] == "approved"
    assert out["auto_decision"]["reviewer_id"] == "system"
    assert client.get("/api/agents/review/queue/brand_a").json()["count"] == 0


def test_auto_approve_leaves_failed_generation_queued(client, test_settings, bfs, linter):
    test_settings.auto_approve_enabled = True
    out = _enqueue(client, bfs, linter, "item_crashed", overall=0.92, error="generator crashed")
    assert out["disposition"] == "auto_approvable"
    assert out["auto_decision"] is None

    q = client.get("/api/agents/review/queue/brand_a").json()
    assert [it["id"] for it in q["items"]] == ["item_crashed"]
    assert client.post("/api/agents/review/approve/item_crashed").status_code == 409


def test_queue_page_reports_total_pending(client, bfs, linter):
    for item_id in ("item_p1", "item_p2", "item_p3"):
        _enqueue(client, bfs, linter, item_id)

    data = client.get("/api/agents/review/queue/brand_a", params={"limit": 2}).json()
    assert [it["id"] for it in data["items"]] == ["item_p1", "item_p2"]
    assert data["count"] == 2
    assert data["total"] == 3


def test_partial_linter_payload_is_rejected(client, bfs):
    body = {
        "id": "item_lint",
        "brand_id": "brand_a",
        "agent_kind": "doc",
        "result": {"bfs": bfs(0.9), "linter_results": {"passed": False}},
    }
    r = client.post("/api/agents/review/items", json=body)
    assert r.status_code == 422
    assert r.json()["code"] == "validation_error"
    assert client.get("/api/agents/review/queue/brand_a").json()["total"] == 0


def test_multi_brand_view_reports_capped_brands(client, test_settings, bfs, linter):
    test_settings.aggregator_max_brands = 1
    _enqueue(client, bfs, linter, "item_a1", brand_id="A")

    data = client.get("/api/agents/review/queues", params=[("brand_ids", "A"), ("brand_ids", "B")]).json()
    assert data["brands"]["A"]["status"] == "ok"
    assert data["brands"]["B"]["status"] == "error"
    assert data["brands"]["B"]["error_type"] == "LimitExceeded"
    assert data["summary"]["brands_failed"] == ["B"]

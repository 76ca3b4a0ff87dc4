# content_review/services/store.py
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from content_review.core.errors import DuplicateItemError, NotFoundError, UpstreamUnavailableError
from content_review.schemas.review import ReviewDecision, ReviewItem

DEFAULT_TIMEOUT_S = 5.0


# -------------------------
# Connection handling
# -------------------------
@contextmanager
def _connect(sqlite_path: Path, timeout_s: float = DEFAULT_TIMEOUT_S) -> Iterator[sqlite3.Connection]:
    """
    Autocommit connection (transactions are opened explicitly).
    Any sqlite failure surfaces as UpstreamUnavailableError.
    """
    try:
        con = sqlite3.connect(str(sqlite_path), timeout=float(timeout_s), isolation_level=None)
    except sqlite3.Error as e:
        raise UpstreamUnavailableError(f"Review store unavailable: {type(e).__name__}: {e}") from e

    con.row_factory = sqlite3.Row
    try:
        yield con
    except sqlite3.Error as e:
        if con.in_transaction:
            con.rollback()
        raise UpstreamUnavailableError(f"Review store unavailable: {type(e).__name__}: {e}") from e
    finally:
        con.close()


# -------------------------
# DB initialization + migration
# -------------------------
def _ensure_column(con: sqlite3.Connection, table: str, col: str, col_type: str) -> None:
    """Lightweight migration: add column if missing (SQLite-safe for local use)."""
    cur = con.cursor()
    cur.execute(f"PRAGMA table_info({table});")
    cols = {row[1] for row in cur.fetchall()}
    if col not in cols:
        cur.execute(f"ALTER TABLE {table} ADD COLUMN {col} {col_type};")


def init_db(sqlite_path: Path, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
    sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()

        # pending queue; rows are deleted once decided
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS review_items (
              seq INTEGER PRIMARY KEY AUTOINCREMENT,  -- insertion order (FIFO)
              id TEXT NOT NULL UNIQUE,
              brand_id TEXT NOT NULL,
              agent_kind TEXT NOT NULL,      -- doc | design | advisor
              input TEXT,                    -- JSON string
              output TEXT,                   -- JSON string
              fidelity_score TEXT,           -- JSON string (BrandFidelityScore)
              compliance_result TEXT,        -- JSON string (LinterResult)
              generation_error TEXT,
              created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_review_items_brand ON review_items (brand_id, seq)"
        )

        # Decision log table (audit), append-only
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS review_decisions (
              id TEXT PRIMARY KEY,
              item_id TEXT NOT NULL UNIQUE,
              brand_id TEXT NOT NULL,
              outcome TEXT NOT NULL,         -- approved | rejected
              reviewer_id TEXT NOT NULL,
              reviewer_notes TEXT,
              disposition TEXT NOT NULL,
              decided_at TEXT NOT NULL,
              item_snapshot TEXT             -- JSON string of the item as decided
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_review_decisions_brand ON review_decisions (brand_id, decided_at)"
        )

        # ---- migrations (for older DBs) ----
        _ensure_column(con, "review_decisions", "item_snapshot", "TEXT")


# -------------------------
# Row <-> model helpers
# -------------------------
def _dumps(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def _item_params(item: ReviewItem) -> tuple:
    data = item.model_dump(mode="json")
    return (
        item.id,
        item.brand_id,
        item.agent_kind.value,
        _dumps(data.get("input") or {}),
        _dumps(data.get("output")),
        _dumps(data.get("fidelity_score")),
        _dumps(data.get("compliance_result")),
        item.generation_error,
        item.created_at.isoformat(),
    )


def _row_to_item(row: sqlite3.Row) -> ReviewItem:
    d = dict(row)
    return ReviewItem.model_validate(
        {
            "id": d["id"],
            "brand_id": d["brand_id"],
            "agent_kind": d["agent_kind"],
            "input": json.loads(d.get("input") or "{}"),
            "output": json.loads(d["output"]) if d.get("output") else None,
            "fidelity_score": json.loads(d["fidelity_score"]) if d.get("fidelity_score") else None,
            "compliance_result": json.loads(d["compliance_result"]) if d.get("compliance_result") else None,
            "generation_error": d.get("generation_error"),
            "created_at": d["created_at"],
        },
        # passed was derived at ingestion with the configured threshold
        context={"pass_threshold": None},
    )


def _row_to_decision(row: sqlite3.Row) -> ReviewDecision:
    d = dict(row)
    d.pop("item_snapshot", None)
    return ReviewDecision.model_validate(d)


# -------------------------
# Review queue
# -------------------------
def enqueue_item(sqlite_path: Path, item: ReviewItem, timeout_s: float = DEFAULT_TIMEOUT_S) -> ReviewItem:
    """
    Adds an item to its brand's pending queue.
    An id that is pending or already decided is a duplicate.
    """
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute("BEGIN IMMEDIATE")
        cur.execute("SELECT 1 FROM review_decisions WHERE item_id = ?", (item.id,))
        if cur.fetchone():
            con.rollback()
            raise DuplicateItemError(f"Item {item.id} was already decided.", item_id=item.id)
        try:
            cur.execute(
                """
                INSERT INTO review_items (
                  id, brand_id, agent_kind, input, output,
                  fidelity_score, compliance_result, generation_error, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                _item_params(item),
            )
        except sqlite3.IntegrityError as e:
            con.rollback()
            raise DuplicateItemError(f"Item {item.id} is already queued.", item_id=item.id) from e
        con.commit()
    return item


def list_pending(
    sqlite_path: Path,
    brand_id: str,
    limit: int = 200,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> List[ReviewItem]:
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute(
            """
            SELECT *
            FROM review_items
            WHERE brand_id = ?
            ORDER BY seq ASC
            LIMIT ?
            """,
            (brand_id, int(limit)),
        )
        return [_row_to_item(r) for r in cur.fetchall()]


def count_pending(sqlite_path: Path, brand_id: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> int:
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute("SELECT COUNT(*) AS n FROM review_items WHERE brand_id = ?", (brand_id,))
        return int(cur.fetchone()["n"])


def get_item(sqlite_path: Path, item_id: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> Optional[ReviewItem]:
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute("SELECT * FROM review_items WHERE id = ?", (item_id,))
        row = cur.fetchone()
        if not row:
            return None
        return _row_to_item(row)


def remove_item(sqlite_path: Path, item_id: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> bool:
    """Deletes a pending item. Absent items are a no-op (returns False)."""
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute("DELETE FROM review_items WHERE id = ?", (item_id,))
        return cur.rowcount > 0


# -------------------------
# Decisions (audit log)
# -------------------------
def _insert_decision(cur: sqlite3.Cursor, decision: ReviewDecision, item_snapshot: Optional[str]) -> None:
    cur.execute(
        """
        INSERT INTO review_decisions (
          id, item_id, brand_id, outcome, reviewer_id,
          reviewer_notes, disposition, decided_at, item_snapshot
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            decision.id,
            decision.item_id,
            decision.brand_id,
            decision.outcome,
            decision.reviewer_id,
            decision.reviewer_notes,
            decision.disposition.value,
            decision.decided_at.isoformat(),
            item_snapshot,
        ),
    )


def remove_and_record(
    sqlite_path: Path,
    item: ReviewItem,
    decision: ReviewDecision,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> ReviewDecision:
    """
    Conditional delete + audit append in one write transaction.
    If the delete matches nothing another caller already decided the item.
    """
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute("BEGIN IMMEDIATE")
        cur.execute(
            "DELETE FROM review_items WHERE id = ? AND brand_id = ?",
            (decision.item_id, decision.brand_id),
        )
        if cur.rowcount == 0:
            con.rollback()
            raise NotFoundError(f"Item {decision.item_id} is no longer pending.", item_id=decision.item_id)

        _insert_decision(cur, decision, item.model_dump_json())
        con.commit()
    return decision


def append_decision(sqlite_path: Path, decision: ReviewDecision, timeout_s: float = DEFAULT_TIMEOUT_S) -> ReviewDecision:
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        try:
            _insert_decision(cur, decision, None)
        except sqlite3.IntegrityError as e:
            raise DuplicateItemError(
                f"Item {decision.item_id} already has a decision.", item_id=decision.item_id
            ) from e
    return decision


def get_decision_for_item(sqlite_path: Path, item_id: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> Optional[ReviewDecision]:
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute("SELECT * FROM review_decisions WHERE item_id = ?", (item_id,))
        row = cur.fetchone()
        return _row_to_decision(row) if row else None


def list_decisions(
    sqlite_path: Path,
    brand_id: str,
    limit: int = 200,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> List[ReviewDecision]:
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()
        cur.execute(
            """
            SELECT *
            FROM review_decisions
            WHERE brand_id = ?
            ORDER BY decided_at DESC, rowid DESC
            LIMIT ?
            """,
            (brand_id, int(limit)),
        )
        return [_row_to_decision(r) for r in cur.fetchall()]


def decision_summary(sqlite_path: Path, brand_id: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> Dict[str, Any]:
    init_db(sqlite_path, timeout_s)

    with _connect(sqlite_path, timeout_s) as con:
        cur = con.cursor()

        cur.execute(
            """
            SELECT outcome, COUNT(*) AS n
            FROM review_decisions
            WHERE brand_id = ?
            GROUP BY outcome
            """,
            (brand_id,),
        )
        by_outcome = {row["outcome"]: int(row["n"]) for row in cur.fetchall()}

        cur.execute("SELECT COUNT(*) AS n FROM review_items WHERE brand_id = ?", (brand_id,))
        n_pending = int(cur.fetchone()["n"])

        return {
            "brand_id": brand_id,
            "decisions_total": sum(by_outcome.values()),
            "decisions_by_outcome": by_outcome,
            "pending_total": n_pending,
        }

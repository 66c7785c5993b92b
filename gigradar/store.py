"""Raw and processed posting tables in a single sqlite database.

``postings_raw`` is append-only and keyed by the site-native ``source_id``.
``postings_processed`` holds at most one row per raw row; its presence is
what marks a posting as already scored.
"""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from gigradar.errors import DuplicatePostingError
from gigradar.log import get_logger
from gigradar.models import (
    ClientInfo,
    PostingDetails,
    ProcessedResult,
    RawPosting,
    ScoreBreakdown,
    budget_from_dict,
    budget_to_dict,
)

log = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS postings_raw (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id         TEXT NOT NULL UNIQUE,
    url               TEXT NOT NULL,
    title             TEXT,
    description       TEXT,
    budget            TEXT,
    job_type          TEXT,
    experience_level  TEXT,
    duration          TEXT,
    project_type      TEXT,
    skill_tags        TEXT NOT NULL DEFAULT '[]',
    connects_required INTEGER,
    client            TEXT NOT NULL DEFAULT '{}',
    posted_at         TEXT,
    fetched_at        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS postings_processed (
    id                   INTEGER PRIMARY KEY REFERENCES postings_raw(id) ON DELETE CASCADE,
    clean_text           TEXT NOT NULL,
    extracted_skill_tags TEXT NOT NULL DEFAULT '[]',
    embedding_vector     TEXT NOT NULL,
    embedding_similarity REAL NOT NULL,
    budget_score         REAL NOT NULL,
    client_score         REAL NOT NULL,
    skills_score         REAL NOT NULL,
    relevance_score      REAL NOT NULL,
    metadata             TEXT NOT NULL DEFAULT '{}',
    processed_at         TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_processed_relevance ON postings_processed (relevance_score);

CREATE VIEW IF NOT EXISTS scored_postings AS
SELECT r.id, r.source_id, r.url, r.title, r.description, r.budget, r.job_type,
       r.experience_level, r.duration, r.project_type, r.skill_tags,
       r.connects_required, r.client, r.posted_at, r.fetched_at,
       p.extracted_skill_tags, p.embedding_similarity, p.budget_score,
       p.client_score, p.skills_score, p.relevance_score, p.processed_at
FROM postings_processed p
JOIN postings_raw r ON r.id = p.id;
"""

SORT_COLUMNS: dict[str, str] = {
    "relevance": "relevance_score DESC",
    "date": "processed_at DESC",
    "budget": "budget_score DESC",
    "client": "client_score DESC",
}
HIGH_SCORE = 70


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _row_to_raw(row: sqlite3.Row) -> RawPosting:
    return RawPosting(
        id=row["id"],
        source_id=row["source_id"],
        url=row["url"],
        title=row["title"],
        description=row["description"],
        budget=budget_from_dict(json.loads(row["budget"]) if row["budget"] else None),
        job_type=row["job_type"],
        experience_level=row["experience_level"],
        duration=row["duration"],
        project_type=row["project_type"],
        skill_tags=json.loads(row["skill_tags"] or "[]"),
        connects_required=row["connects_required"],
        client=ClientInfo.from_dict(json.loads(row["client"] or "{}")),
        posted_at=row["posted_at"],
        fetched_at=row["fetched_at"],
    )


def _row_to_processed(row: sqlite3.Row) -> ProcessedResult:
    return ProcessedResult(
        id=row["id"],
        clean_text=row["clean_text"],
        extracted_skill_tags=json.loads(row["extracted_skill_tags"] or "[]"),
        embedding_vector=json.loads(row["embedding_vector"]),
        scores=ScoreBreakdown(
            embedding_similarity=row["embedding_similarity"],
            budget_score=row["budget_score"],
            client_score=row["client_score"],
            skills_score=row["skills_score"],
            relevance_score=row["relevance_score"],
        ),
        metadata=json.loads(row["metadata"] or "{}"),
        processed_at=row["processed_at"],
    )


class Store:
    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ── raw ─────────────────────────────────────────────────────────────

    def insert_raw(self, posting: RawPosting) -> int:
        """Insert one posting; a known ``source_id`` raises DuplicatePostingError."""
        fetched_at = posting.fetched_at or utcnow()
        try:
            with self.conn:
                cur = self.conn.execute(
                    """
                    INSERT INTO postings_raw (
                        source_id, url, title, description, budget, job_type,
                        experience_level, duration, project_type, skill_tags,
                        connects_required, client, posted_at, fetched_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        posting.source_id,
                        posting.url,
                        posting.title,
                        posting.description,
                        _dumps(budget_to_dict(posting.budget)) if posting.budget else None,
                        posting.job_type,
                        posting.experience_level,
                        posting.duration,
                        posting.project_type,
                        _dumps(list(posting.skill_tags)),
                        posting.connects_required,
                        _dumps(posting.client.to_dict()),
                        posting.posted_at,
                        fetched_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicatePostingError(posting.source_id) from exc
        posting.id = cur.lastrowid
        posting.fetched_at = fetched_at
        return posting.id

    def update_details(self, posting_id: int, details: PostingDetails) -> None:
        """Fill in a discovered stub once its detail page has been scraped."""
        with self.conn:
            self.conn.execute(
                """
                UPDATE postings_raw SET
                    title = ?, description = ?, budget = ?, job_type = ?,
                    experience_level = ?, duration = ?, project_type = ?,
                    skill_tags = ?, connects_required = ?, client = ?, fetched_at = ?
                WHERE id = ?
                """,
                (
                    details.title,
                    details.description,
                    _dumps(budget_to_dict(details.budget)) if details.budget else None,
                    details.job_type,
                    details.experience_level,
                    details.duration,
                    details.project_type,
                    _dumps(list(details.skill_tags)),
                    details.connects_required,
                    _dumps(details.client.to_dict()),
                    utcnow(),
                    posting_id,
                ),
            )

    def get_raw(self, posting_id: int) -> RawPosting | None:
        row = self.conn.execute("SELECT * FROM postings_raw WHERE id = ?", (posting_id,)).fetchone()
        return _row_to_raw(row) if row else None

    def get_raw_by_source_id(self, source_id: str) -> RawPosting | None:
        row = self.conn.execute(
            "SELECT * FROM postings_raw WHERE source_id = ?", (source_id,)
        ).fetchone()
        return _row_to_raw(row) if row else None

    def postings_missing_details(self, limit: int = 10) -> list[RawPosting]:
        rows = self.conn.execute(
            "SELECT * FROM postings_raw WHERE description IS NULL ORDER BY id LIMIT ?",
            (limit,),
        ).fetchall()
        return [_row_to_raw(r) for r in rows]

    # ── processed ───────────────────────────────────────────────────────

    def pending_postings(self) -> list[RawPosting]:
        """Scraped postings that have no processed row yet, oldest first."""
        rows = self.conn.execute(
            """
            SELECT r.* FROM postings_raw r
            LEFT JOIN postings_processed p ON p.id = r.id
            WHERE r.description IS NOT NULL AND p.id IS NULL
            ORDER BY r.id
            """
        ).fetchall()
        return [_row_to_raw(r) for r in rows]

    def insert_processed(self, result: ProcessedResult) -> None:
        processed_at = result.processed_at or utcnow()
        s = result.scores
        try:
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO postings_processed (
                        id, clean_text, extracted_skill_tags, embedding_vector,
                        embedding_similarity, budget_score, client_score,
                        skills_score, relevance_score, metadata, processed_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        result.id,
                        result.clean_text,
                        _dumps(list(result.extracted_skill_tags)),
                        _dumps(list(result.embedding_vector)),
                        s.embedding_similarity,
                        s.budget_score,
                        s.client_score,
                        s.skills_score,
                        s.relevance_score,
                        _dumps(result.metadata),
                        processed_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicatePostingError(result.id) from exc
        result.processed_at = processed_at

    def get_processed(self, posting_id: int) -> ProcessedResult | None:
        row = self.conn.execute(
            "SELECT * FROM postings_processed WHERE id = ?", (posting_id,)
        ).fetchone()
        return _row_to_processed(row) if row else None

    # ── read view ───────────────────────────────────────────────────────

    def scored_postings(
        self,
        *,
        min_score: float | None = None,
        max_score: float | None = None,
        job_type: str | None = None,
        experience_level: str | None = None,
        countries: list[str] | None = None,
        sort_by: str = "relevance",
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        where: list[str] = []
        params: list[Any] = []
        if min_score is not None:
            where.append("relevance_score >= ?")
            params.append(min_score)
        if max_score is not None:
            where.append("relevance_score <= ?")
            params.append(max_score)
        if job_type:
            where.append("job_type = ?")
            params.append(job_type)
        if experience_level:
            where.append("experience_level = ?")
            params.append(experience_level)
        if countries:
            where.append(
                "json_extract(client, '$.country') IN (%s)" % ", ".join("?" for _ in countries)
            )
            params.extend(countries)

        sql = "SELECT * FROM scored_postings"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += f" ORDER BY {SORT_COLUMNS.get(sort_by, SORT_COLUMNS['relevance'])} LIMIT ?"
        params.append(limit)

        out: list[dict[str, Any]] = []
        for row in self.conn.execute(sql, params).fetchall():
            item = dict(row)
            for key, empty in (("budget", "null"), ("skill_tags", "[]"), ("client", "{}"),
                               ("extracted_skill_tags", "[]")):
                item[key] = json.loads(item[key] or empty)
            out.append(item)
        return out

    def stats(self) -> dict[str, Any]:
        row = self.conn.execute(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN relevance_score >= ? THEN 1 ELSE 0 END) AS high_score,
                   AVG(relevance_score) AS avg_relevance
            FROM postings_processed
            """,
            (HIGH_SCORE,),
        ).fetchone()
        return {
            "total": row["total"] or 0,
            "high_score": row["high_score"] or 0,
            "avg_relevance": round(row["avg_relevance"] or 0),
        }

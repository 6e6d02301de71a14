"""SQLiteStore — the local file-based store for synced PR history.

Schema:
  prs           — one row per merged PR, enrichment columns inline (all NULL
                  when the PR was stored without enrichment).
  file_changes  — one row per (pr_number, file_path); replaced wholesale
                  whenever the parent PR is upserted.

Labels and enrichment area tags are JSON columns to keep read paths free of
extra JOINs.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from prlog_store.base import BaseStore, StoreError
from prlog_store.models import EnrichmentResult, FileChangeRecord, PullRequestRecord, StoreStats

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS prs (
    number            INTEGER PRIMARY KEY,
    title             TEXT NOT NULL,
    body              TEXT,
    author            TEXT NOT NULL,
    created_at        TEXT NOT NULL,
    merged_at         TEXT,
    base_branch       TEXT NOT NULL,
    head_branch       TEXT NOT NULL,
    url               TEXT NOT NULL,
    additions         INTEGER NOT NULL DEFAULT 0,
    deletions         INTEGER NOT NULL DEFAULT 0,
    changed_files     INTEGER NOT NULL DEFAULT 0,
    files_summary     TEXT,
    labels_json       TEXT NOT NULL DEFAULT '[]',
    why               TEXT,
    business_impact   TEXT,
    technical_changes TEXT,
    areas_json        TEXT,
    llm_model         TEXT,
    confidence_score  REAL,
    generated_at      TEXT,
    synced_at         TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS file_changes (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    pr_number         INTEGER NOT NULL REFERENCES prs (number) ON DELETE CASCADE,
    file_path         TEXT NOT NULL,
    additions         INTEGER NOT NULL DEFAULT 0,
    deletions         INTEGER NOT NULL DEFAULT 0,
    status            TEXT NOT NULL,
    previous_filename TEXT,
    UNIQUE (pr_number, file_path)
);
CREATE INDEX IF NOT EXISTS idx_prs_author       ON prs (author);
CREATE INDEX IF NOT EXISTS idx_prs_created_at   ON prs (created_at);
CREATE INDEX IF NOT EXISTS idx_prs_merged_at    ON prs (merged_at);
CREATE INDEX IF NOT EXISTS idx_file_changes_path ON file_changes (file_path);
"""

_PR_COLUMNS = (
    "number",
    "title",
    "body",
    "author",
    "created_at",
    "merged_at",
    "base_branch",
    "head_branch",
    "url",
    "additions",
    "deletions",
    "changed_files",
    "files_summary",
    "labels_json",
    "why",
    "business_impact",
    "technical_changes",
    "areas_json",
    "llm_model",
    "confidence_score",
    "generated_at",
    "synced_at",
)


class SQLiteStore(BaseStore):
    """Stores PR history in a local SQLite database file.

    The database path defaults to ``prs.db`` inside the configured
    ``output_dir``; parent directories are created on open.
    """

    def __init__(self, db_path: str = "prlog/prs.db"):
        path = Path(db_path)
        if str(db_path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    def insert_pr(self, record: PullRequestRecord) -> None:
        try:
            with self._conn:
                self._write(record, verb="INSERT")
        except sqlite3.IntegrityError as e:
            raise StoreError(f"PR #{record.number} already exists: {e}") from e

    def upsert_pr(self, record: PullRequestRecord) -> None:
        # One transaction: the PR row and its file changes are replaced together.
        try:
            with self._conn:
                self._conn.execute("DELETE FROM file_changes WHERE pr_number = ?", (record.number,))
                self._write(record, verb="INSERT OR REPLACE")
        except sqlite3.Error as e:
            raise StoreError(f"Could not store PR #{record.number}: {e}") from e

    def _write(self, record: PullRequestRecord, verb: str) -> None:
        placeholders = ", ".join("?" for _ in _PR_COLUMNS)
        self._conn.execute(
            f"{verb} INTO prs ({', '.join(_PR_COLUMNS)}) VALUES ({placeholders})",
            self._record_to_row(record),
        )
        self._conn.executemany(
            """
            INSERT INTO file_changes
              (pr_number, file_path, additions, deletions, status, previous_filename)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (record.number, f.file_path, f.additions, f.deletions, f.status, f.previous_filename)
                for f in _unique_files(record.files)
            ],
        )

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def get_pr(self, number: int) -> PullRequestRecord | None:
        row = self._conn.execute("SELECT * FROM prs WHERE number = ?", (number,)).fetchone()
        if row is None:
            return None
        return self._row_to_record(row, self.get_file_changes(number))

    def get_file_changes(self, number: int) -> list[FileChangeRecord]:
        rows = self._conn.execute(
            "SELECT * FROM file_changes WHERE pr_number = ? ORDER BY file_path",
            (number,),
        ).fetchall()
        return [self._row_to_file(r) for r in rows]

    def list_prs(
        self,
        author: str | None = None,
        since: str | None = None,
        until: str | None = None,
        file: str | None = None,
        area: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[PullRequestRecord]:
        query = "SELECT * FROM prs WHERE 1=1"
        params: list = []

        if author:
            query += " AND author = ?"
            params.append(author)
        if since:
            query += " AND created_at >= ?"
            params.append(since)
        if until:
            query += " AND created_at <= ?"
            params.append(until)
        if file:
            query += " AND number IN (SELECT pr_number FROM file_changes WHERE file_path = ?)"
            params.append(file)
        if area:
            prefix = area.rstrip("/") + "/"
            query += " AND number IN (SELECT pr_number FROM file_changes WHERE substr(file_path, 1, ?) = ?)"
            params.extend([len(prefix), prefix])

        query += " ORDER BY created_at DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
            if offset:
                query += " OFFSET ?"
                params.append(offset)

        rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_record(r, self.get_file_changes(r["number"])) for r in rows]

    def list_prs_for_context(self) -> list[PullRequestRecord]:
        rows = self._conn.execute("SELECT * FROM prs ORDER BY merged_at DESC, created_at DESC").fetchall()
        return [self._row_to_record(r, self.get_file_changes(r["number"])) for r in rows]

    def stats(self) -> StoreStats:
        total_prs = self._conn.execute("SELECT COUNT(*) FROM prs").fetchone()[0]
        total_files = self._conn.execute("SELECT COUNT(DISTINCT file_path) FROM file_changes").fetchone()[0]
        oldest, newest = self._conn.execute("SELECT MIN(created_at), MAX(created_at) FROM prs").fetchone()
        authors = self._conn.execute(
            "SELECT author, COUNT(*) AS n FROM prs GROUP BY author ORDER BY n DESC, author LIMIT 10"
        ).fetchall()
        return StoreStats(
            total_prs=total_prs,
            total_files=total_files,
            oldest_pr=oldest,
            newest_pr=newest,
            top_authors=[(r["author"], r["n"]) for r in authors],
        )

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------ #
    # Row mapping                                                          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _record_to_row(record: PullRequestRecord) -> tuple:
        e = record.enrichment
        return (
            record.number,
            record.title,
            record.body,
            record.author,
            record.created_at,
            record.merged_at,
            record.base_branch,
            record.head_branch,
            record.url,
            record.additions,
            record.deletions,
            record.changed_files,
            record.files_summary,
            json.dumps(record.labels),
            e.why if e else None,
            e.business_impact if e else None,
            e.technical_changes if e else None,
            json.dumps(e.areas) if e else None,
            e.model if e else None,
            e.confidence_score if e else None,
            e.generated_at if e else None,
            datetime.now(timezone.utc).isoformat(),
        )

    @staticmethod
    def _row_to_file(row: sqlite3.Row) -> FileChangeRecord:
        return FileChangeRecord(
            pr_number=row["pr_number"],
            file_path=row["file_path"],
            additions=row["additions"],
            deletions=row["deletions"],
            status=row["status"],
            previous_filename=row["previous_filename"],
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row, files: list[FileChangeRecord]) -> PullRequestRecord:
        enrichment = None
        if row["llm_model"] is not None:
            enrichment = EnrichmentResult(
                why=row["why"] or "",
                business_impact=row["business_impact"] or "",
                technical_changes=row["technical_changes"] or "",
                confidence_score=row["confidence_score"] if row["confidence_score"] is not None else 0.0,
                model=row["llm_model"],
                generated_at=row["generated_at"] or "",
                areas=json.loads(row["areas_json"] or "[]"),
            )
        return PullRequestRecord(
            number=row["number"],
            title=row["title"],
            body=row["body"],
            author=row["author"],
            created_at=row["created_at"],
            merged_at=row["merged_at"],
            base_branch=row["base_branch"],
            head_branch=row["head_branch"],
            url=row["url"],
            additions=row["additions"],
            deletions=row["deletions"],
            changed_files=row["changed_files"],
            files_summary=row["files_summary"],
            labels=json.loads(row["labels_json"] or "[]"),
            files=files,
            enrichment=enrichment,
        )


def _unique_files(files: list[FileChangeRecord]) -> list[FileChangeRecord]:
    """Keep the last entry per path so the (pr_number, file_path) key holds."""
    by_path: dict[str, FileChangeRecord] = {}
    for f in files:
        if f.file_path in by_path:
            logger.debug("Duplicate file entry for PR #%d: %s", f.pr_number, f.file_path)
        by_path[f.file_path] = f
    return list(by_path.values())

"""PR history data models.

Decoupled from prlog_core so the store layer can be used independently.
The sync orchestrator maps a fetched PullRequest (+ optional Summary) to a
PullRequestRecord before calling store.upsert_pr().
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FileChangeRecord:
    """One (PR, file path) pair. Owned by its PullRequestRecord."""

    pr_number: int
    file_path: str
    additions: int = 0
    deletions: int = 0
    status: str = "modified"  # "added" | "modified" | "deleted" | "renamed"
    previous_filename: str | None = None


@dataclass
class EnrichmentResult:
    """AI-generated rationale attached to a PR.

    Stored all-or-nothing: a record either carries a complete
    EnrichmentResult or None, never a partially filled one.
    """

    why: str
    business_impact: str
    technical_changes: str
    confidence_score: float
    model: str  # "<provider>/<model>"
    generated_at: str  # ISO-8601 UTC timestamp
    areas: list[str] = field(default_factory=list)


@dataclass
class PullRequestRecord:
    """Canonical fact about one merged PR. ``number`` is the unique key."""

    number: int
    title: str
    body: str | None
    author: str
    created_at: str
    merged_at: str | None
    base_branch: str
    head_branch: str
    url: str
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    files_summary: str | None = None
    labels: list[str] = field(default_factory=list)
    files: list[FileChangeRecord] = field(default_factory=list)
    enrichment: EnrichmentResult | None = None

    @property
    def activity_date(self) -> str:
        """Merge date when merged, creation date otherwise."""
        return self.merged_at or self.created_at


@dataclass
class StoreStats:
    total_prs: int
    total_files: int
    oldest_pr: str | None
    newest_pr: str | None
    top_authors: list[tuple[str, int]] = field(default_factory=list)

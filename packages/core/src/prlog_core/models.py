"""Remote PR data and enrichment output.

These mirror what the PR source returns and what the enrichment step
produces. They are distinct from prlog_store.models, which describe what is
persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ChangedFile:
    path: str
    additions: int = 0
    deletions: int = 0
    status: str = "modified"
    previous_filename: str | None = None


@dataclass
class Review:
    author: str
    state: str  # "APPROVED" | "CHANGES_REQUESTED" | "COMMENTED" | ...
    submitted_at: str | None = None


@dataclass
class PullRequest:
    """Full PR detail as returned by RemoteClient.fetch_detail()."""

    number: int
    title: str
    body: str
    author: str
    created_at: str
    merged_at: str | None
    base_branch: str
    head_branch: str
    url: str
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    files: list[ChangedFile] = field(default_factory=list)
    reviews: list[Review] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)


@dataclass
class PullRequestSummary:
    """One entry of a list query — no files, reviews or labels."""

    number: int
    title: str
    author: str
    created_at: str
    merged_at: str | None
    url: str


@dataclass
class PullRequestList:
    prs: list[PullRequestSummary]
    total: int
    # Approximation: True iff the raw page exactly filled the requested limit.
    has_more: bool


@dataclass
class RepoInfo:
    name: str
    full_name: str
    default_branch: str
    description: str


@dataclass
class Summary:
    """Fixed-shape enrichment output. All three text fields are always set."""

    why: str
    business_impact: str
    technical_changes: str
    areas: list[str] = field(default_factory=list)
    confidence_score: float = 0.5


@dataclass
class ConnectionStatus:
    success: bool
    provider: str
    model: str
    error: str | None = None

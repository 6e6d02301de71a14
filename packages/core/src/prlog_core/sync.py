"""Sync orchestration: fetch → idempotency check → enrich → persist → context documents.

A run threads one _RunState through its steps. Each per-PR step returns a
_PROutcome that is folded into that state, and every observer only ever
sees a frozen RunProgress snapshot of it.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from prlog_core.context_docs import generate_context_documents
from prlog_core.enricher import Enricher
from prlog_core.errors import AuthenticationError, PrerequisiteError
from prlog_core.gh.client import RemoteClient
from prlog_core.models import ChangedFile, PullRequest, Summary
from prlog_store.base import BaseStore
from prlog_store.models import EnrichmentResult, FileChangeRecord, PullRequestRecord

logger = logging.getLogger(__name__)

FETCH_BATCH_SIZE = 10
MAX_SUMMARY_FILES = 10


class Phase(str, enum.Enum):
    FETCHING = "fetching"
    PROCESSING = "processing"
    STORING = "storing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class SyncError:
    pr_number: int | None
    message: str


@dataclass(frozen=True)
class SyncOptions:
    pr_numbers: tuple[int, ...] | None = None
    since: str | None = None
    dry_run: bool = False
    force: bool = False
    skip_ai: bool = False


@dataclass(frozen=True)
class RunProgress:
    """Snapshot of a run handed to ``on_progress``. Never shared mutably.

    ``total_prs`` stays 0 while fetching and is set once, to the number of
    PRs actually fetched, so it never decreases across snapshots.
    """

    phase: Phase
    total_prs: int
    fetched_prs: int
    processed_prs: int
    created: int
    updated: int
    skipped: int
    current_pr: int | None
    errors: tuple[SyncError, ...]


@dataclass(frozen=True)
class RunReport:
    """Terminal result of sync(). Inspect ``errors`` to detect partial failure."""

    total_prs: int
    fetched_prs: int
    processed_prs: int
    created: int
    updated: int
    skipped: int
    errors: tuple[SyncError, ...]
    context_files_generated: int = 0
    context_files_skipped: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


class _Result(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"
    FAILED = "failed"


@dataclass
class _PROutcome:
    result: _Result
    errors: list[SyncError] = field(default_factory=list)


@dataclass
class _RunState:
    phase: Phase = Phase.FETCHING
    total_prs: int = 0
    fetched_prs: int = 0
    processed_prs: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    current_pr: int | None = None
    errors: list[SyncError] = field(default_factory=list)
    context_generated: int = 0
    context_skipped: int = 0

    def enter(self, phase: Phase) -> None:
        order = list(Phase)
        if order.index(phase) < order.index(self.phase):
            raise RuntimeError(f"Sync phase cannot go back from {self.phase.value} to {phase.value}")
        self.phase = phase

    def fold(self, outcome: _PROutcome) -> None:
        self.errors.extend(outcome.errors)
        if outcome.result is _Result.CREATED:
            self.created += 1
        elif outcome.result is _Result.UPDATED:
            self.updated += 1
        elif outcome.result is _Result.SKIPPED:
            self.skipped += 1
        self.processed_prs += 1

    def snapshot(self) -> RunProgress:
        return RunProgress(
            phase=self.phase,
            total_prs=self.total_prs,
            fetched_prs=self.fetched_prs,
            processed_prs=self.processed_prs,
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            current_pr=self.current_pr,
            errors=tuple(self.errors),
        )

    def report(self) -> RunReport:
        return RunReport(
            total_prs=self.total_prs,
            fetched_prs=self.fetched_prs,
            processed_prs=self.processed_prs,
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            errors=tuple(self.errors),
            context_files_generated=self.context_generated,
            context_files_skipped=self.context_skipped,
        )


ProgressCallback = Callable[[RunProgress], None]


def files_summary(files: list[ChangedFile]) -> str:
    """One-line summary of the first files of a PR, e.g. ``a.py (+3/-1), b.py (+0/-2)``."""
    if not files:
        return "No files changed"
    summary = ", ".join(f"{f.path} (+{f.additions}/-{f.deletions})" for f in files[:MAX_SUMMARY_FILES])
    if len(files) > MAX_SUMMARY_FILES:
        return f"{summary}, and {len(files) - MAX_SUMMARY_FILES} more files"
    return summary


def build_record(pr: PullRequest, summary: Summary | None, model: str | None) -> PullRequestRecord:
    """Map a fetched PR (+ optional enrichment) to the record persisted in the store."""
    enrichment = None
    if summary is not None:
        enrichment = EnrichmentResult(
            why=summary.why,
            business_impact=summary.business_impact,
            technical_changes=summary.technical_changes,
            confidence_score=summary.confidence_score,
            model=model or "unknown",
            generated_at=datetime.now(timezone.utc).isoformat(),
            areas=list(summary.areas),
        )
    return PullRequestRecord(
        number=pr.number,
        title=pr.title,
        body=pr.body or None,
        author=pr.author,
        created_at=pr.created_at,
        merged_at=pr.merged_at,
        base_branch=pr.base_branch,
        head_branch=pr.head_branch,
        url=pr.url,
        additions=pr.additions,
        deletions=pr.deletions,
        changed_files=pr.changed_files,
        files_summary=files_summary(pr.files),
        labels=list(pr.labels),
        files=[
            FileChangeRecord(
                pr_number=pr.number,
                file_path=f.path,
                additions=f.additions,
                deletions=f.deletions,
                status=f.status,
                previous_filename=f.previous_filename,
            )
            for f in pr.files
        ],
        enrichment=enrichment,
    )


class SyncOrchestrator:
    """Drives one repository's PR history into the store.

    The store is opened once per orchestrator and must not be shared with a
    second orchestrator writing at the same time.
    """

    def __init__(self, config: dict, client: RemoteClient, enricher: Enricher, store: BaseStore):
        self.config = config
        self.client = client
        self.enricher = enricher
        self.store = store

    def sync(self, options: SyncOptions | None = None, on_progress: ProgressCallback | None = None) -> RunReport:
        """Run one sync and return its report.

        Raises:
            PrerequisiteError: if the PR source is not authenticated or the AI
                backend does not answer. Nothing is fetched in that case.
        """
        options = options or SyncOptions()
        state = _RunState()

        def emit() -> None:
            if on_progress:
                on_progress(state.snapshot())

        self._check_prerequisites()

        emit()
        prs = self._fetch(options, state, emit)
        state.total_prs = len(prs)
        state.fetched_prs = len(prs)
        emit()

        if prs:
            state.enter(Phase.PROCESSING)
            emit()
            for pr in prs:
                state.current_pr = pr.number
                emit()
                state.fold(self._process(pr, options))
                emit()
            state.current_pr = None

            if self.config.get("generate_context_files", True) and not options.dry_run:
                state.enter(Phase.STORING)
                emit()
                self._regenerate_context(state)

        state.enter(Phase.COMPLETE)
        emit()
        report = state.report()
        logger.info(
            "Sync complete: %d processed, %d created, %d updated, %d skipped, %d error(s)",
            report.processed_prs,
            report.created,
            report.updated,
            report.skipped,
            len(report.errors),
        )
        return report

    # ------------------------------------------------------------------ #
    # Steps                                                                #
    # ------------------------------------------------------------------ #

    def _check_prerequisites(self) -> None:
        try:
            self.client.check_auth()
        except AuthenticationError as e:
            raise PrerequisiteError(str(e)) from e

        status = self.enricher.test_connection()
        if not status.success:
            raise PrerequisiteError(f"AI connection failed: {status.error}")

    def _fetch(self, options: SyncOptions, state: _RunState, emit: Callable[[], None]) -> list[PullRequest]:
        prs: list[PullRequest] = []

        if options.pr_numbers:
            for number in options.pr_numbers:
                try:
                    prs.append(self.client.fetch_detail(number))
                except Exception as e:
                    state.errors.append(SyncError(number, f"Failed to fetch PR #{number}: {e}"))
                state.fetched_prs = len(prs)
                emit()
            return prs

        def on_batch_progress(processed: int, total: int) -> None:
            state.fetched_prs = processed
            emit()

        def on_batch_error(number: int, error: Exception) -> None:
            state.errors.append(SyncError(number, f"Failed to fetch PR #{number}: {error}"))

        for batch in self.client.fetch_batch(
            batch_size=FETCH_BATCH_SIZE,
            since=options.since,
            on_progress=on_batch_progress,
            on_error=on_batch_error,
        ):
            prs.extend(batch)
        return prs

    def _process(self, pr: PullRequest, options: SyncOptions) -> _PROutcome:
        try:
            existing = self.store.get_pr(pr.number)
            if existing is not None and not options.force:
                logger.debug("PR #%d already stored, skipping", pr.number)
                return _PROutcome(_Result.SKIPPED)

            errors: list[SyncError] = []
            summary = None
            if not options.skip_ai:
                try:
                    summary = self.enricher.summarize(pr)
                except Exception as e:
                    errors.append(SyncError(pr.number, f"AI processing failed: {e}"))

            record = build_record(pr, summary, self.enricher.model_identifier if summary else None)

            if options.dry_run:
                return _PROutcome(_Result.DRY_RUN, errors)

            self.store.upsert_pr(record)
            return _PROutcome(_Result.UPDATED if existing is not None else _Result.CREATED, errors)
        except Exception as e:
            logger.warning("Processing PR #%d failed: %s", pr.number, e)
            return _PROutcome(_Result.FAILED, [SyncError(pr.number, f"Processing failed: {e}")])

    def _regenerate_context(self, state: _RunState) -> None:
        # Always a full recomputation over the whole corpus, never this run's delta.
        try:
            generated, skipped = generate_context_documents(self.store.list_prs_for_context(), self.config)
        except Exception as e:
            logger.warning("Context generation failed: %s", e)
            state.errors.append(SyncError(None, f"Context generation failed: {e}"))
            return
        state.context_generated = generated
        state.context_skipped = skipped

    # ------------------------------------------------------------------ #
    # Diagnostics                                                          #
    # ------------------------------------------------------------------ #

    def test_connections(self) -> dict:
        """Report the health of every collaborator without raising."""
        results: dict = {"github": False, "ai": None, "database": False}

        try:
            self.client.check_auth()
            results["github"] = True
        except Exception as e:
            logger.debug("GitHub check failed: %s", e)

        results["ai"] = self.enricher.test_connection()

        try:
            self.store.stats()
            results["database"] = True
        except Exception as e:
            logger.debug("Database check failed: %s", e)

        return results

    def close(self) -> None:
        self.store.close()

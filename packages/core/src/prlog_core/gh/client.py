"""Rate-limited client over a PR source.

All outbound queries go through RemoteClient._call(), which

  1. throttles: waits until 60s / requests_per_minute has passed since the
     previous call,
  2. retries once on a rate-limit failure (after a 60s cooldown) or once on
     a network/timeout failure (after a 5s cooldown),
  3. wraps anything else as RemoteError("remote CLI error: ...").

The throttle assumes one in-flight call at a time. Do not call a single
RemoteClient from several threads.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from datetime import datetime, timezone

from prlog_core.errors import ConfigError, RemoteError, RemoteSourceError
from prlog_core.models import (
    ChangedFile,
    PullRequest,
    PullRequestList,
    PullRequestSummary,
    RepoInfo,
    Review,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_COOLDOWN_SECONDS = 60
NETWORK_COOLDOWN_SECONDS = 5
BULK_LIST_LIMIT = 1000


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 date or timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


class RemoteClient:
    """Serialised, throttled access to one repository's pull requests."""

    def __init__(self, source, requests_per_minute: int = 100):
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        self._source = source
        self._requests_per_minute = requests_per_minute
        self.request_count = 0
        self.last_request_time = 0.0

    # ------------------------------------------------------------------ #
    # Throttle / retry                                                     #
    # ------------------------------------------------------------------ #

    @property
    def min_interval(self) -> float:
        return 60.0 / self._requests_per_minute

    def _throttle(self) -> None:
        if self.request_count:
            elapsed = time.monotonic() - self.last_request_time
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
        self.last_request_time = time.monotonic()
        self.request_count += 1

    def _call(self, operation: Callable, *args, retry: bool = True):
        self._throttle()
        try:
            return operation(*args)
        except RemoteSourceError as e:
            message = str(e).lower()
            if retry and "rate limit" in message:
                logger.warning("GitHub rate limit hit, waiting %d seconds...", RATE_LIMIT_COOLDOWN_SECONDS)
                time.sleep(RATE_LIMIT_COOLDOWN_SECONDS)
                return self._call(operation, *args, retry=False)
            if retry and ("network" in message or "timeout" in message):
                logger.warning("Network issue, retrying in %d seconds...", NETWORK_COOLDOWN_SECONDS)
                time.sleep(NETWORK_COOLDOWN_SECONDS)
                return self._call(operation, *args, retry=False)
            raise RemoteError(f"remote CLI error: {e}") from e

    def stats(self) -> dict:
        return {"request_count": self.request_count, "last_request_time": self.last_request_time}

    def reset_stats(self) -> None:
        self.request_count = 0
        self.last_request_time = 0.0

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def check_auth(self) -> None:
        """Raise AuthenticationError if the source is not authenticated."""
        self._source.check_auth()

    def fetch_list(self, limit: int = 100, since: str | datetime | None = None, state: str = "merged") -> PullRequestList:
        """List PRs, newest first. ``since`` filters on creation date after fetching."""
        raw = self._call(self._source.list_prs, limit, state)

        prs = [
            PullRequestSummary(
                number=item["number"],
                title=item.get("title") or "",
                author=_login(item.get("author")),
                created_at=item.get("createdAt") or "",
                merged_at=item.get("mergedAt"),
                url=item.get("url") or "",
            )
            for item in raw
        ]
        if since is not None:
            try:
                since_dt = parse_timestamp(since)
            except ValueError as e:
                raise ConfigError(f"Invalid date {since!r}: expected YYYY-MM-DD or an ISO-8601 timestamp") from e
            prs = [pr for pr in prs if pr.created_at and parse_timestamp(pr.created_at) >= since_dt]

        return PullRequestList(prs=prs, total=len(prs), has_more=len(raw) == limit)

    def fetch_detail(self, number: int) -> PullRequest:
        """Fetch one PR with its files, reviews and labels."""
        data = self._call(self._source.view_pr, number)

        files = data.get("files") or []
        changed_files = data.get("changedFiles") or 0
        if not files and changed_files > 0:
            # Very large PRs come back without structured file entries.
            try:
                names = self._call(self._source.diff_names, number)
                files = [{"path": name} for name in names]
            except RemoteError as e:
                logger.warning("Could not list files for PR #%d: %s", number, e)

        return PullRequest(
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body") or "",
            author=_login(data.get("author")),
            created_at=data.get("createdAt") or "",
            merged_at=data.get("mergedAt"),
            base_branch=data.get("baseRefName") or "",
            head_branch=data.get("headRefName") or "",
            url=data.get("url") or "",
            additions=data.get("additions") or 0,
            deletions=data.get("deletions") or 0,
            changed_files=changed_files or len(files),
            files=[
                ChangedFile(
                    path=f["path"],
                    additions=f.get("additions") or 0,
                    deletions=f.get("deletions") or 0,
                    status=f.get("status") or "modified",
                    previous_filename=f.get("previous_filename"),
                )
                for f in files
            ],
            reviews=[
                Review(
                    author=_login(r.get("author")),
                    state=r.get("state") or "",
                    submitted_at=r.get("submittedAt"),
                )
                for r in data.get("reviews") or []
            ],
            labels=[label["name"] if isinstance(label, dict) else str(label) for label in data.get("labels") or []],
        )

    def fetch_batch(
        self,
        batch_size: int = 10,
        since: str | datetime | None = None,
        on_progress: Callable[[int, int], None] | None = None,
        on_error: Callable[[int, Exception], None] | None = None,
    ) -> Iterator[list[PullRequest]]:
        """Yield detailed PRs in chunks of ``batch_size``.

        A PR whose detail fetch fails is reported through ``on_error`` and
        left out; the remaining PRs are still fetched.
        """
        listing = self.fetch_list(limit=BULK_LIST_LIMIT, since=since)
        total = len(listing.prs)
        processed = 0

        for start in range(0, total, batch_size):
            chunk: list[PullRequest] = []
            for summary in listing.prs[start : start + batch_size]:
                try:
                    chunk.append(self.fetch_detail(summary.number))
                except Exception as e:
                    logger.warning("Failed to fetch PR #%d: %s", summary.number, e)
                    if on_error:
                        on_error(summary.number, e)
                    continue
                processed += 1
                if on_progress:
                    on_progress(processed, total)
            if chunk:
                yield chunk

    def repo_info(self) -> RepoInfo:
        data = self._call(self._source.repo_info)
        default_branch = (data.get("defaultBranchRef") or {}).get("name") or "main"
        return RepoInfo(
            name=data.get("name") or "",
            full_name=data.get("nameWithOwner") or "",
            default_branch=default_branch,
            description=data.get("description") or "",
        )


def _login(author) -> str:
    if isinstance(author, dict):
        return author.get("login") or "unknown"
    return author or "unknown"


def build_remote_client(config: dict) -> RemoteClient:
    """Instantiate the configured PR source wrapped in a RemoteClient."""
    repo = config.get("repo")
    if not repo:
        raise ConfigError("No repository configured. Set 'repo' in .prlog.yml or run inside a GitHub checkout.")

    if config.get("source", "gh") == "api":
        from prlog_core.gh.api_source import GithubApiSource

        source = GithubApiSource(repo, token=config.get("github_token"))
    else:
        from prlog_core.gh.cli_source import GhCliSource

        source = GhCliSource(repo)
    return RemoteClient(source, requests_per_minute=config.get("throttle_rpm", 100))

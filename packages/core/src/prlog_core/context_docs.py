"""Context documents: one markdown summary of PR history per qualifying area.

The document always states how many PRs exist for the area in total, even
when the recency window or the display cap shows fewer (or none).
"""

from __future__ import annotations

import calendar
import logging
import posixpath
from datetime import datetime, timezone
from pathlib import Path

from prlog_core.areas import detect_areas, should_emit
from prlog_core.gh.client import parse_timestamp
from prlog_store.models import PullRequestRecord

logger = logging.getLogger(__name__)

MAX_DISPLAYED_PRS = 20
MAX_LISTED_FILES = 5
MAX_BODY_EXCERPT_CHARS = 200


def months_ago(now: datetime, months: int) -> datetime:
    """``now`` shifted back by calendar months, clamping the day (Mar 31 → Feb 28)."""
    month_index = now.month - 1 - months
    year = now.year + month_index // 12
    month = month_index % 12 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def _activity_time(pr: PullRequestRecord) -> datetime:
    return parse_timestamp(pr.activity_date)


def _relevant_files(pr: PullRequestRecord, area: str) -> list[str]:
    return [
        f.file_path
        for f in pr.files
        if f.file_path.startswith(area + "/") or f.file_path == area or posixpath.dirname(f.file_path) == area
    ]


def format_pr_entry(pr: PullRequestRecord, area: str) -> str:
    date = _activity_time(pr).strftime("%Y-%m-%d")
    relevant = _relevant_files(pr, area)

    if relevant:
        file_list = ", ".join(f"`{posixpath.basename(p)}`" for p in relevant[:MAX_LISTED_FILES])
    else:
        file_list = f"{len(pr.files)} files"

    entry = f"### #{pr.number}: {pr.title}\n"
    entry += f"**{date}** by @{pr.author} • {file_list}"
    if len(relevant) > MAX_LISTED_FILES:
        entry += f" and {len(relevant) - MAX_LISTED_FILES} more"

    if pr.enrichment and pr.enrichment.why:
        entry += f"\n\n{pr.enrichment.why}"
    elif pr.body and len(pr.body) < MAX_BODY_EXCERPT_CHARS:
        entry += f"\n\n{pr.body}"

    if pr.enrichment and pr.enrichment.technical_changes:
        entry += f"\n\n**Technical changes:** {pr.enrichment.technical_changes}"
    return entry


def format_context_document(
    area: str,
    prs: list[PullRequestRecord],
    history_months: int,
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(timezone.utc)
    cutoff = months_ago(now, history_months)

    ordered = sorted(prs, key=_activity_time, reverse=True)
    recent = [pr for pr in ordered if _activity_time(pr) >= cutoff]
    displayed = recent[:MAX_DISPLAYED_PRS]

    entries = "\n\n".join(format_pr_entry(pr, area) for pr in displayed)
    overflow = ""
    if len(recent) > len(displayed):
        overflow = f"\n*...and {len(recent) - len(displayed)} more PRs*\n"

    return f"""# Context: {area}

> **Auto-generated context file** - Do not edit manually
> Last updated: {now.strftime("%Y-%m-%d")}
> Generated by prlog

## Recent Changes (showing {len(displayed)} of {len(prs)} PRs, last {history_months} months)

{entries}
{overflow}
---

## Why this file exists

This context file summarizes the pull requests that shaped the `{area}` area, so that new team members,
reviewers and coding assistants can see why the code looks the way it does.

## How to regenerate

```bash
prlog sync                    # Update all context files
prlog generate {area}    # Regenerate just this area
```

*Generated from {len(prs)} total PRs affecting this area.*
"""


def context_document_path(area: str, config: dict) -> Path:
    return Path(config.get("context_root", ".")) / area / config.get("context_filename", ".prlog")


def write_context_document(area: str, prs: list[PullRequestRecord], config: dict) -> Path:
    path = context_document_path(area, config)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_context_document(area, prs, config.get("history_months", 6)), encoding="utf-8")
    logger.debug("Wrote context document %s (%d PRs)", path, len(prs))
    return path


def generate_context_documents(prs: list[PullRequestRecord], config: dict) -> tuple[int, int]:
    """Write a document for every qualifying area. Returns ``(generated, skipped)``."""
    if not config.get("generate_context_files", True):
        return 0, 0

    threshold = config.get("context_file_threshold", 3)
    generated = skipped = 0
    for area, area_prs in detect_areas(prs).items():
        if should_emit(area, len(area_prs), threshold):
            write_context_document(area, area_prs, config)
            generated += 1
        else:
            skipped += 1
    return generated, skipped

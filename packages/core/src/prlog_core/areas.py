"""Area partitioning of the PR corpus.

An area is a directory prefix one to three segments deep (``src``,
``src/auth``, ``src/auth/handlers``). Areas nest and overlap on purpose: one
changed file puts its PR into every prefix above it. Areas are recomputed
from the whole corpus on every run; nothing about them is stored.
"""

from __future__ import annotations

from prlog_store.models import PullRequestRecord

MAX_AREA_DEPTH = 3
MIN_AREA_PRS = 2

GENERIC_ROOTS = frozenset({"src", "lib", "."})
BUILD_MARKERS = ("node_modules", "dist", "build")


def candidate_areas(file_path: str) -> list[str]:
    """Directory prefixes of ``file_path``, shallowest first.

    The filename segment is never a candidate, and neither is any prefix
    containing a dot.
    """
    parts = file_path.split("/")
    candidates = []
    for depth in range(1, min(len(parts) - 1, MAX_AREA_DEPTH) + 1):
        area = "/".join(parts[:depth])
        if area and "." not in area:
            candidates.append(area)
    return candidates


def detect_areas(prs: list[PullRequestRecord]) -> dict[str, list[PullRequestRecord]]:
    """Map each area touched by at least MIN_AREA_PRS distinct PRs to those PRs.

    PR lists keep corpus order and hold each PR number once.
    """
    area_map: dict[str, dict[int, PullRequestRecord]] = {}

    for pr in prs:
        if not pr.files:
            continue
        touched: dict[str, None] = {}
        for f in pr.files:
            for area in candidate_areas(f.file_path):
                touched[area] = None
        for area in touched:
            area_map.setdefault(area, {}).setdefault(pr.number, pr)

    return {area: list(by_number.values()) for area, by_number in area_map.items() if len(by_number) >= MIN_AREA_PRS}


def should_emit(area: str, pr_count: int, threshold: int) -> bool:
    """Decide whether ``area`` deserves a context document.

    Every check is an independent veto; a high PR count never overrides one.
    """
    if pr_count < threshold:
        return False
    if area in GENERIC_ROOTS:
        return False
    if area.startswith(".") or "/." in area:
        return False
    if any(marker in area for marker in BUILD_MARKERS):
        return False
    return True

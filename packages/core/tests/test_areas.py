"""Tests for area detection and the emission rule."""

import pytest

from prlog_core.areas import candidate_areas, detect_areas, should_emit
from prlog_store.models import FileChangeRecord, PullRequestRecord


def _record(number, *paths):
    return PullRequestRecord(
        number=number,
        title=f"PR {number}",
        body=None,
        author="alice",
        created_at="2024-03-01T10:00:00Z",
        merged_at="2024-03-02T10:00:00Z",
        base_branch="main",
        head_branch=f"branch-{number}",
        url=f"https://github.com/acme/widgets/pull/{number}",
        files=[FileChangeRecord(pr_number=number, file_path=p) for p in paths],
    )


class TestCandidateAreas:
    def test_nested_prefixes(self):
        assert candidate_areas("src/auth/handlers/login.py") == ["src", "src/auth", "src/auth/handlers"]

    def test_depth_capped_at_three(self):
        assert candidate_areas("a/b/c/d/e.py") == ["a", "a/b", "a/b/c"]

    def test_root_file_has_no_area(self):
        assert candidate_areas("README.md") == []

    def test_dotted_prefixes_excluded(self):
        assert candidate_areas(".github/workflows/ci.yml") == []
        assert candidate_areas("pkg/v1.2/mod.py") == ["pkg"]


class TestDetectAreas:
    def test_one_file_contributes_to_every_prefix(self):
        prs = [_record(1, "src/auth/login.py"), _record(2, "src/auth/logout.py")]
        areas = detect_areas(prs)
        assert set(areas) == {"src", "src/auth"}
        assert [pr.number for pr in areas["src/auth"]] == [1, 2]

    def test_areas_below_two_prs_dropped(self):
        prs = [_record(1, "src/auth/login.py"), _record(2, "docs/guide.md")]
        assert detect_areas(prs) == {}

    def test_pr_listed_once_per_area(self):
        prs = [_record(1, "api/a.py", "api/b.py", "api/v2/c.py"), _record(2, "api/d.py")]
        areas = detect_areas(prs)
        assert [pr.number for pr in areas["api"]] == [1, 2]

    def test_duplicate_records_counted_once(self):
        pr = _record(1, "api/a.py")
        assert detect_areas([pr, pr]) == {}

    def test_prs_without_files_ignored(self):
        assert detect_areas([_record(1), _record(2)]) == {}


class TestShouldEmit:
    def test_qualifying_area(self):
        assert should_emit("src/auth", 5, 3)

    def test_below_threshold(self):
        assert not should_emit("src/auth", 2, 3)

    @pytest.mark.parametrize("area", ["src", "lib", "."])
    def test_generic_roots_vetoed(self, area):
        assert not should_emit(area, 100, 3)

    @pytest.mark.parametrize("area", [".github", "config/.hidden"])
    def test_hidden_directories_vetoed(self, area):
        assert not should_emit(area, 100, 3)

    @pytest.mark.parametrize("area", ["web/node_modules", "dist", "app/build"])
    def test_build_output_vetoed(self, area):
        assert not should_emit(area, 100, 3)

    def test_build_marker_matches_substring(self):
        assert not should_emit("buildtools", 10, 3)

    def test_examples(self):
        assert not should_emit("node_modules", 100, 1)
        assert should_emit("src/auth", 3, 3)
        assert not should_emit("src/auth", 2, 3)

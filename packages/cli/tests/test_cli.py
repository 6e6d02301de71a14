"""Tests for the CLI entry point and commands."""

import json
import subprocess
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from prlog_cli.cli import _build_store, main
from prlog_core.config import DEFAULT_CONFIG
from prlog_core.errors import ConfigError, PrerequisiteError
from prlog_core.sync import RunReport, SyncError
from prlog_store.models import EnrichmentResult, FileChangeRecord, PullRequestRecord, StoreStats
from prlog_store.sqlite import SQLiteStore


def _make_config(**overrides):
    return {
        **DEFAULT_CONFIG,
        "repo": "acme/widgets",
        "github_token": "tok",
        "anthropic_api_key": "ant",
        "openai_api_key": None,
        **overrides,
    }


def _patch_common(mocker, config=None, token="tok"):
    """Patch load_config, token resolution and _build_store for most tests."""
    cfg = config or _make_config()
    mocker.patch("prlog_core.config.load_config", return_value=cfg)
    mocker.patch("prlog_cli.auth.resolve_github_token", return_value=token)
    mocker.patch("prlog_cli.auth.detect_repo_from_git", return_value="acme/detected")
    mock_store = MagicMock(spec=SQLiteStore)
    mock_store.list_prs.return_value = []
    mock_store.list_prs_for_context.return_value = []
    mocker.patch("prlog_cli.cli._build_store", return_value=mock_store)
    return cfg, mock_store


def _record(number=1, paths=("api/handlers/a.py",), why="Because."):
    return PullRequestRecord(
        number=number,
        title=f"Fix thing {number}",
        body=None,
        author="alice",
        created_at="2024-03-01T10:00:00Z",
        merged_at="2024-03-02T10:00:00Z",
        base_branch="main",
        head_branch="fix",
        url=f"https://github.com/acme/widgets/pull/{number}",
        changed_files=len(paths),
        files=[FileChangeRecord(pr_number=number, file_path=p) for p in paths],
        enrichment=EnrichmentResult(
            why=why,
            business_impact="b",
            technical_changes="t",
            confidence_score=0.7,
            model="stub/stub-1",
            generated_at="2024-03-02T10:00:00+00:00",
        )
        if why
        else None,
    )


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestMain:
    def test_invalid_config_is_a_usage_error(self, mocker):
        mocker.patch("prlog_core.config.load_config", side_effect=ConfigError("Failed to parse config file"))
        result = CliRunner().invoke(main, ["stats"])
        assert result.exit_code != 0
        assert "Failed to parse config file" in result.output

    def test_repo_detected_from_git_when_unset(self, mocker):
        cfg, mock_store = _patch_common(mocker, config=_make_config(repo=None))
        mock_store.stats.return_value = StoreStats(0, 0, None, None)
        CliRunner().invoke(main, ["stats"])
        assert cfg["repo"] == "acme/detected"

    def test_store_closed_after_command(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.stats.return_value = StoreStats(0, 0, None, None)
        CliRunner().invoke(main, ["stats"])
        mock_store.close.assert_called_once()


class TestBuildStore:
    def test_sqlite_under_output_dir(self, tmp_path):
        store = _build_store({"output_dir": str(tmp_path / "out")})
        assert isinstance(store, SQLiteStore)
        store.close()
        assert (tmp_path / "out" / "prs.db").exists()


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


def _report(**overrides):
    values = dict(total_prs=2, fetched_prs=2, processed_prs=2, created=1, updated=0, skipped=1, errors=())
    values.update(overrides)
    return RunReport(**values)


class TestSyncCommand:
    def _patch_sync(self, mocker, report=None):
        mocker.patch("prlog_cli.commands.sync.build_remote_client", return_value=MagicMock())
        mocker.patch("prlog_cli.commands.sync.get_provider", return_value=MagicMock())
        orchestrator_cls = mocker.patch("prlog_cli.commands.sync.SyncOrchestrator")
        orchestrator_cls.return_value.sync.return_value = report or _report()
        return orchestrator_cls.return_value

    def test_options_passed_through(self, mocker):
        _patch_common(mocker)
        orchestrator = self._patch_sync(mocker)

        result = CliRunner().invoke(main, ["sync", "--pr", "1", "--pr", "2", "--dry-run", "--force", "--skip-ai"])

        assert result.exit_code == 0
        options = orchestrator.sync.call_args.args[0]
        assert options.pr_numbers == (1, 2)
        assert options.dry_run and options.force and options.skip_ai

    def test_bulk_sync_with_since(self, mocker):
        _patch_common(mocker)
        orchestrator = self._patch_sync(mocker)

        CliRunner().invoke(main, ["sync", "--since", "2024-01-01"])

        options = orchestrator.sync.call_args.args[0]
        assert options.pr_numbers is None
        assert options.since == "2024-01-01"

    def test_unparseable_since_is_a_usage_error(self, mocker):
        _patch_common(mocker)
        orchestrator = self._patch_sync(mocker)

        result = CliRunner().invoke(main, ["sync", "--since", "last-week"])

        assert result.exit_code == 2
        assert "last-week" in result.output
        orchestrator.sync.assert_not_called()

    def test_since_help_describes_creation_date(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["sync", "--help"])
        assert "Only PRs created on or after this date" in " ".join(result.output.split())

    def test_prints_report(self, mocker):
        _patch_common(mocker)
        self._patch_sync(mocker)
        result = CliRunner().invoke(main, ["sync"])
        assert "Created" in result.output
        assert "Skipped" in result.output

    def test_errors_listed_and_exit_nonzero(self, mocker):
        _patch_common(mocker)
        self._patch_sync(mocker, _report(errors=(SyncError(7, "AI processing failed: quota"),)))

        result = CliRunner().invoke(main, ["sync"])

        assert result.exit_code == 1
        assert "#7: AI processing failed: quota" in result.output

    def test_prerequisite_failure(self, mocker):
        _patch_common(mocker)
        orchestrator = self._patch_sync(mocker)
        orchestrator.sync.side_effect = PrerequisiteError('GitHub CLI not authenticated. Run "gh auth login" first.')

        result = CliRunner().invoke(main, ["sync"])

        assert result.exit_code != 0
        assert "gh auth login" in result.output

    def test_missing_api_key(self, mocker):
        _patch_common(mocker, config=_make_config(anthropic_api_key=None))
        mocker.patch("prlog_cli.commands.sync.build_remote_client", return_value=MagicMock())

        result = CliRunner().invoke(main, ["sync"])

        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_repo(self, mocker):
        _patch_common(mocker, config=_make_config(repo=None))
        mocker.patch("prlog_cli.auth.detect_repo_from_git", return_value=None)

        result = CliRunner().invoke(main, ["sync"])

        assert result.exit_code != 0
        assert "No repository configured" in result.output


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


class TestGenerateCommand:
    def test_empty_store(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["generate"])
        assert result.exit_code == 0
        assert "prlog sync" in result.output

    def test_all_areas(self, mocker, tmp_path):
        cfg, mock_store = _patch_common(mocker, config=_make_config(context_root=str(tmp_path), context_file_threshold=2))
        mock_store.list_prs_for_context.return_value = [_record(1), _record(2)]

        result = CliRunner().invoke(main, ["generate"])

        assert result.exit_code == 0
        assert "Generated 2 context file(s)" in result.output
        assert (tmp_path / "api" / "handlers" / ".prlog").exists()

    def test_single_area(self, mocker, tmp_path):
        _, mock_store = _patch_common(mocker, config=_make_config(context_root=str(tmp_path), context_file_threshold=2))
        mock_store.list_prs_for_context.return_value = [_record(1), _record(2)]

        result = CliRunner().invoke(main, ["generate", "api/handlers/"])

        assert result.exit_code == 0
        content = (tmp_path / "api" / "handlers" / ".prlog").read_text()
        assert content.startswith("# Context: api/handlers")
        assert not (tmp_path / "api" / ".prlog").exists()

    def test_single_area_below_threshold_rejected(self, mocker, tmp_path):
        _, mock_store = _patch_common(mocker, config=_make_config(context_root=str(tmp_path), context_file_threshold=10))
        mock_store.list_prs_for_context.return_value = [_record(1), _record(2)]

        result = CliRunner().invoke(main, ["generate", "api/handlers"])

        assert result.exit_code == 1
        assert "does not qualify" in result.output
        assert not (tmp_path / "api" / "handlers" / ".prlog").exists()

    def test_build_directory_rejected(self, mocker, tmp_path):
        _, mock_store = _patch_common(mocker, config=_make_config(context_root=str(tmp_path), context_file_threshold=2))
        mock_store.list_prs_for_context.return_value = [
            _record(1, paths=("dist/x/a.js",)),
            _record(2, paths=("dist/x/b.js",)),
        ]

        result = CliRunner().invoke(main, ["generate", "dist"])

        assert result.exit_code == 1
        assert not (tmp_path / "dist" / ".prlog").exists()

    def test_disabled_in_config(self, mocker, tmp_path):
        _, mock_store = _patch_common(
            mocker, config=_make_config(context_root=str(tmp_path), generate_context_files=False)
        )
        mock_store.list_prs_for_context.return_value = [_record(1), _record(2)]

        result = CliRunner().invoke(main, ["generate"])

        assert result.exit_code == 0
        assert "disabled" in result.output
        assert not (tmp_path / "api" / "handlers" / ".prlog").exists()

    def test_unknown_area(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.list_prs_for_context.return_value = [_record(1), _record(2)]

        result = CliRunner().invoke(main, ["generate", "nowhere"])

        assert result.exit_code != 0
        assert "No area 'nowhere'" in result.output
        assert "Available areas: api, api/handlers" in result.output


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------


class TestShowCommand:
    def test_table(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.list_prs.return_value = [_record(1), _record(2, why=None)]

        result = CliRunner().invoke(main, ["show"])

        assert result.exit_code == 0
        assert "#1" in result.output
        assert "Because." in result.output
        assert "summarised" in result.output

    def test_filters_passed_to_store(self, mocker):
        _, mock_store = _patch_common(mocker)

        CliRunner().invoke(
            main,
            ["show", "--author", "bob", "--since", "2024-01-01", "--file", "a.py", "--area", "api/", "--limit", "5"],
        )

        mock_store.list_prs.assert_called_once_with(author="bob", since="2024-01-01", file="a.py", area="api", limit=5)

    def test_empty(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["show"])
        assert "No pull requests found" in result.output

    def test_database_footer(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.list_prs.return_value = [_record(1)]
        mock_store.stats.return_value = StoreStats(total_prs=12, total_files=40, oldest_pr=None, newest_pr=None)

        result = CliRunner().invoke(main, ["show"])

        assert "Database: 12 total PRs, 40 files tracked" in result.output

    def test_summary_format(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.list_prs.return_value = [_record(1, why="x" * 150), _record(2, why=None)]
        mock_store.stats.return_value = StoreStats(2, 2, None, None)

        result = CliRunner().invoke(main, ["show", "--format", "summary"])

        assert result.exit_code == 0
        assert "Found 2 PRs:" in result.output
        assert "#1 Fix thing 1" in result.output
        assert "alice • 2024-03-01" in result.output
        flat = result.output.replace("\n", "")
        assert "x" * 100 + "..." in flat
        assert "x" * 101 not in flat
        assert "Database: 2 total PRs" in result.output

    def test_json_format(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.list_prs.return_value = [_record(1), _record(2, why=None)]

        result = CliRunner().invoke(main, ["show", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [d["number"] for d in data] == [1, 2]
        assert data[0]["enrichment"]["why"] == "Because."
        assert data[0]["files"][0]["file_path"] == "api/handlers/a.py"
        assert data[1]["enrichment"] is None
        mock_store.stats.assert_not_called()

    def test_json_format_empty(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["show", "--format", "json"])
        assert json.loads(result.output) == []

    def test_unknown_format_rejected(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["show", "--format", "xml"])
        assert result.exit_code == 2

    def test_unmatched_area_lists_available_areas(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.list_prs_for_context.return_value = [_record(1), _record(2)]

        result = CliRunner().invoke(main, ["show", "--area", "web"])

        assert "No pull requests found affecting area: web" in result.output
        assert "Available areas: api, api/handlers" in result.output


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------


class TestStatsCommand:
    def test_shows_totals_and_authors(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.stats.return_value = StoreStats(
            total_prs=3,
            total_files=5,
            oldest_pr="2024-01-01T00:00:00Z",
            newest_pr="2024-03-01T00:00:00Z",
            top_authors=[("alice", 2), ("bob", 1)],
        )

        result = CliRunner().invoke(main, ["stats"])

        assert result.exit_code == 0
        assert "Total PRs:          3" in result.output
        assert "2024-01-01" in result.output
        assert "alice" in result.output

    def test_empty_store(self, mocker):
        _, mock_store = _patch_common(mocker)
        mock_store.stats.return_value = StoreStats(0, 0, None, None)

        result = CliRunner().invoke(main, ["stats"])

        assert result.exit_code == 0
        assert "No pull requests stored yet" in result.output


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from prlog_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from prlog_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from prlog_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from prlog_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_returns_empty(self, monkeypatch):
        from prlog_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="   ")
            assert resolve_github_token() is None


class TestDetectRepoFromGit:
    def test_https_remote(self):
        from prlog_cli.auth import detect_repo_from_git

        with patch("subprocess.run", return_value=MagicMock(returncode=0, stdout="https://github.com/acme/widgets.git\n")):
            assert detect_repo_from_git() == "acme/widgets"

    def test_ssh_remote(self):
        from prlog_cli.auth import detect_repo_from_git

        with patch("subprocess.run", return_value=MagicMock(returncode=0, stdout="git@github.com:acme/widgets.git\n")):
            assert detect_repo_from_git() == "acme/widgets"

    def test_non_github_remote(self):
        from prlog_cli.auth import detect_repo_from_git

        with patch("subprocess.run", return_value=MagicMock(returncode=0, stdout="https://gitlab.com/acme/widgets.git")):
            assert detect_repo_from_git() is None

    def test_not_a_git_checkout(self):
        from prlog_cli.auth import detect_repo_from_git

        with patch("subprocess.run", return_value=MagicMock(returncode=128, stdout="")):
            assert detect_repo_from_git() is None

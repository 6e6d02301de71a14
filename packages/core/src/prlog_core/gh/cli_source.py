"""PR source backed by the GitHub CLI (``gh``).

Every query shells out to ``gh`` and returns the decoded JSON payload
unchanged. Normalising the payload into prlog models is RemoteClient's job,
so the API-backed source only has to produce the same dict shape.
"""

from __future__ import annotations

import json
import logging
import subprocess

from prlog_core.errors import AuthenticationError, RemoteSourceError

logger = logging.getLogger(__name__)

_LIST_FIELDS = "number,title,author,createdAt,mergedAt,url"
_DETAIL_FIELDS = (
    "number,title,body,author,createdAt,mergedAt,baseRefName,headRefName,url,"
    "additions,deletions,changedFiles,files,reviews,labels"
)
_REPO_FIELDS = "name,nameWithOwner,defaultBranchRef,description"
_TIMEOUT_SECONDS = 120


class GhCliSource:
    """Queries one repository through ``gh``."""

    def __init__(self, repo: str):
        self.repo = repo

    def check_auth(self) -> None:
        try:
            subprocess.run(["gh", "auth", "status"], capture_output=True, text=True, check=True, timeout=10)
        except (FileNotFoundError, subprocess.CalledProcessError, subprocess.TimeoutExpired):
            raise AuthenticationError('GitHub CLI not authenticated. Run "gh auth login" first.')

    def list_prs(self, limit: int, state: str) -> list[dict]:
        output = self._run(
            ["pr", "list", "--repo", self.repo, "--state", state, "--json", _LIST_FIELDS, "--limit", str(limit)]
        )
        return self._decode(output)

    def view_pr(self, number: int) -> dict:
        output = self._run(["pr", "view", str(number), "--repo", self.repo, "--json", _DETAIL_FIELDS])
        return self._decode(output)

    def diff_names(self, number: int) -> list[str]:
        output = self._run(["pr", "diff", str(number), "--repo", self.repo, "--name-only"])
        return [line for line in output.splitlines() if line.strip()]

    def repo_info(self) -> dict:
        return self._decode(self._run(["repo", "view", self.repo, "--json", _REPO_FIELDS]))

    def _run(self, args: list[str]) -> str:
        try:
            result = subprocess.run(
                ["gh", *args],
                capture_output=True,
                text=True,
                timeout=_TIMEOUT_SECONDS,
            )
        except FileNotFoundError:
            raise RemoteSourceError("gh executable not found. Install the GitHub CLI.")
        except subprocess.TimeoutExpired:
            raise RemoteSourceError(f"timeout after {_TIMEOUT_SECONDS}s running gh {' '.join(args[:2])}")

        if result.returncode != 0:
            message = (result.stderr or result.stdout).strip() or f"gh exited with status {result.returncode}"
            logger.debug("gh %s failed: %s", " ".join(args[:2]), message)
            raise RemoteSourceError(message)
        return result.stdout.strip()

    @staticmethod
    def _decode(output: str):
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise RemoteSourceError(f"gh returned invalid JSON: {e}") from e

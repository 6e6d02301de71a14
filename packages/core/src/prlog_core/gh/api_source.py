"""PR source backed by the GitHub REST API (PyGithub).

Produces the same dict shape as ``gh --json`` so RemoteClient can normalise
both sources with one code path. Rate-limit and network failures are
re-raised with messages RemoteClient recognises as retryable.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime

import requests
from github import BadCredentialsException, Github, GithubException, RateLimitExceededException

from prlog_core.errors import AuthenticationError, RemoteSourceError

logger = logging.getLogger(__name__)

# PyGithub reports deletions as "removed"; gh and the store use "deleted".
_STATUS_MAP = {"removed": "deleted"}


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


@contextmanager
def _translate_errors():
    try:
        yield
    except RateLimitExceededException as e:
        raise RemoteSourceError(f"API rate limit exceeded: {e}") from e
    except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
        raise RemoteSourceError(f"network error: {e}") from e
    except GithubException as e:
        raise RemoteSourceError(f"GitHub API error {e.status}: {e.data}") from e


class GithubApiSource:
    """Queries one repository through the REST API with a personal access token."""

    def __init__(self, repo: str, token: str | None):
        self.repo = repo
        self._token = token
        self._gh = Github(token) if token else None
        self._repo_obj = None

    def _get_repo(self):
        if self._gh is None:
            raise AuthenticationError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")
        if self._repo_obj is None:
            self._repo_obj = self._gh.get_repo(self.repo)
        return self._repo_obj

    def check_auth(self) -> None:
        if self._gh is None:
            raise AuthenticationError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")
        try:
            login = self._gh.get_user().login
        except BadCredentialsException:
            raise AuthenticationError("GitHub token was rejected. Check GITHUB_TOKEN.")
        except (GithubException, requests.exceptions.RequestException) as e:
            raise AuthenticationError(f"Could not verify GitHub credentials: {e}")
        logger.debug("Authenticated to GitHub as %s", login)

    def list_prs(self, limit: int, state: str) -> list[dict]:
        api_state = "closed" if state == "merged" else state
        results: list[dict] = []
        with _translate_errors():
            pulls = self._get_repo().get_pulls(state=api_state, sort="created", direction="desc")
            # Lazy iteration: stop as soon as the page is full instead of
            # letting PyGithub walk every closed PR in the repository.
            for pr in pulls:
                if state == "merged" and pr.merged_at is None:
                    continue
                results.append(
                    {
                        "number": pr.number,
                        "title": pr.title,
                        "author": {"login": pr.user.login if pr.user else "unknown"},
                        "createdAt": _iso(pr.created_at),
                        "mergedAt": _iso(pr.merged_at),
                        "url": pr.html_url,
                    }
                )
                if len(results) >= limit:
                    break
        return results

    def view_pr(self, number: int) -> dict:
        with _translate_errors():
            pr = self._get_repo().get_pull(number)
            files = [
                {
                    "path": f.filename,
                    "additions": f.additions,
                    "deletions": f.deletions,
                    "status": _STATUS_MAP.get(f.status, f.status),
                    "previous_filename": f.previous_filename,
                }
                for f in pr.get_files()
            ]
            reviews = [
                {
                    "author": {"login": r.user.login if r.user else "unknown"},
                    "state": r.state,
                    "submittedAt": _iso(r.submitted_at),
                }
                for r in pr.get_reviews()
            ]
            return {
                "number": pr.number,
                "title": pr.title,
                "body": pr.body or "",
                "author": {"login": pr.user.login if pr.user else "unknown"},
                "createdAt": _iso(pr.created_at),
                "mergedAt": _iso(pr.merged_at),
                "baseRefName": pr.base.ref,
                "headRefName": pr.head.ref,
                "url": pr.html_url,
                "additions": pr.additions,
                "deletions": pr.deletions,
                "changedFiles": pr.changed_files,
                "files": files,
                "reviews": reviews,
                "labels": [{"name": label.name} for label in pr.labels],
            }

    def diff_names(self, number: int) -> list[str]:
        with _translate_errors():
            return [f.filename for f in self._get_repo().get_pull(number).get_files()]

    def repo_info(self) -> dict:
        with _translate_errors():
            repo = self._get_repo()
            return {
                "name": repo.name,
                "nameWithOwner": repo.full_name,
                "defaultBranchRef": {"name": repo.default_branch} if repo.default_branch else None,
                "description": repo.description,
            }

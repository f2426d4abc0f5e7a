"""GitHub REST client for branch-head lookups and reachability checks.

Uses the public GitHub API:
  GET {api}/repos/{owner}/{repo}/commits/{branch}
  GET {api}/repos/{owner}/{repo}

Network failures never raise out of this module; they come back as a
``CommitLookup`` in the ``unavailable`` state.
"""

from __future__ import annotations

import logging

import requests

from apkgate.config import AgentSettings
from apkgate.models.repository import CommitLookup, LookupState

logger = logging.getLogger(__name__)


class GitHubClient:
    """Thin wrapper over the GitHub REST API.

    Parameters
    ----------
    settings:
        Supplies repository, API base URL, token and timeout.
    session:
        Optional ``requests.Session`` (tests inject a mock).
    """

    def __init__(
        self,
        settings: AgentSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    @property
    def repository(self) -> str:
        return self._settings.github_repo

    @property
    def branch(self) -> str:
        return self._settings.github_branch

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._settings.github_token:
            headers["Authorization"] = f"Bearer {self._settings.github_token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self._settings.github_api_url.rstrip('/')}/{path.lstrip('/')}"

    def get(self, path: str) -> requests.Response:
        return self._session.get(
            self._url(path),
            headers=self._headers(),
            timeout=self._settings.http_timeout_seconds,
        )

    def post(self, path: str, payload: dict) -> requests.Response:
        return self._session.post(
            self._url(path),
            json=payload,
            headers=self._headers(),
            timeout=self._settings.http_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_reachable(self) -> bool:
        """True if the repository endpoint answers with HTTP 200."""
        try:
            resp = self.get(f"repos/{self.repository}")
        except requests.RequestException as exc:
            logger.warning("GitHub API not accessible: %s", exc)
            return False
        if resp.status_code != 200:
            logger.warning("GitHub API not accessible (HTTP %s)", resp.status_code)
            return False
        logger.info("GitHub API accessible")
        return True

    def latest_commit(self, branch: str | None = None) -> CommitLookup:
        """Look up the head commit SHA of *branch* (default: tracked branch)."""
        branch = branch or self.branch
        try:
            resp = self.get(f"repos/{self.repository}/commits/{branch}")
        except requests.RequestException as exc:
            logger.warning("Cannot reach GitHub for %s@%s: %s", self.repository, branch, exc)
            return CommitLookup(state=LookupState.UNAVAILABLE, detail=str(exc))

        if resp.status_code in (404, 422):
            return CommitLookup(
                state=LookupState.NOT_FOUND,
                detail=f"HTTP {resp.status_code} for {self.repository}@{branch}",
            )
        if resp.status_code != 200:
            return CommitLookup(
                state=LookupState.UNAVAILABLE,
                detail=f"HTTP {resp.status_code} for {self.repository}@{branch}",
            )

        try:
            data = resp.json()
        except ValueError as exc:
            return CommitLookup(state=LookupState.UNAVAILABLE, detail=f"Bad JSON: {exc}")
        if not isinstance(data, dict):
            return CommitLookup(
                state=LookupState.UNAVAILABLE,
                detail=f"Expected a JSON object, got {type(data).__name__}",
            )
        sha = data.get("sha")
        if not isinstance(sha, str) or not sha:
            return CommitLookup(
                state=LookupState.NOT_FOUND, detail="Response carried no sha"
            )
        return CommitLookup(state=LookupState.OK, sha=sha)

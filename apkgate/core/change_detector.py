"""Repository change detection against a persisted last-seen pointer.

The pointer file holds one commit SHA. It is only written after the fetched
head has been compared with it, so a failed lookup never moves it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from apkgate.bridge.github import GitHubClient
from apkgate.core.hasher import atomic_write_text
from apkgate.errors import ApiUnavailable, CommitNotFound
from apkgate.models.repository import DetectionResult, LookupState

logger = logging.getLogger(__name__)

POINTER_FILE = "last_commit_sha"


class RepositoryPointer:
    """The last commit SHA the detector observed, stored in a file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> str | None:
        if not self._path.is_file():
            return None
        value = self._path.read_text(encoding="utf-8").strip()
        return value or None

    def write(self, sha: str) -> None:
        atomic_write_text(self._path, f"{sha}\n")


class RepositoryChangeDetector:
    """Compares the tracked branch head with the stored pointer.

    Parameters
    ----------
    client:
        GitHub client used to look up the branch head.
    pointer:
        Where the last-seen SHA is persisted.
    """

    def __init__(self, client: GitHubClient, pointer: RepositoryPointer) -> None:
        self._client = client
        self._pointer = pointer

    @property
    def pointer(self) -> RepositoryPointer:
        return self._pointer

    def current_head(self) -> str:
        """Fetch the branch head SHA without touching the pointer."""
        lookup = self._client.latest_commit()
        if lookup.state == LookupState.UNAVAILABLE:
            raise ApiUnavailable(
                f"Cannot reach hosting service for {self._client.repository}: {lookup.detail}"
            )
        if lookup.state == LookupState.NOT_FOUND or not lookup.sha:
            raise CommitNotFound(
                f"Branch {self._client.branch} of {self._client.repository} "
                f"resolved to no commit ({lookup.detail})"
            )
        return lookup.sha

    def detect(self) -> DetectionResult:
        """One detection pass.

        First run records the head as a baseline and reports no change.
        Later runs report a change exactly when the head differs from the
        pointer, and then move the pointer.
        """
        logger.info("Checking %s@%s for new commits", self._client.repository, self._client.branch)
        current = self.current_head()
        previous = self._pointer.read()

        if previous is None:
            self._pointer.write(current)
            logger.info("Initial commit recorded: %s", current)
            return DetectionResult(changed=False, commit=current, baseline=True)

        if current != previous:
            self._pointer.write(current)
            logger.info("New commit detected: %s", current)
            return DetectionResult(changed=True, commit=current, previous=previous)

        logger.info("No new commits since last check")
        return DetectionResult(changed=False, commit=current, previous=previous)

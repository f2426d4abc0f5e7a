"""Filesystem-backed preparation manifests.

Layout: {workspace_root}/{preparation_id}/preparation_manifest.json

The manifest is the shared rendezvous with remote CI jobs: they update the
same file to publish progress, and this store re-reads it on every poll.
There is no locking; concurrent writers to one record interleave.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from apkgate.core.hasher import atomic_write_bytes, canonical_json_bytes
from apkgate.errors import ManifestError, PreparationNotFound
from apkgate.models.preparation import PreparationRecord

logger = logging.getLogger(__name__)

MANIFEST_NAME = "preparation_manifest.json"
ID_PREFIX = "prep-"


def make_preparation_id(commit_sha: str, now: datetime | None = None) -> str:
    """Build ``prep-YYYYmmdd-HHMMSS-<sha[:8]>``."""
    now = now or datetime.now(timezone.utc)
    return f"{ID_PREFIX}{now.strftime('%Y%m%d-%H%M%S')}-{commit_sha[:8]}"


class ManifestStore:
    """Reads and writes preparation records as JSON manifests.

    Parameters
    ----------
    workspace_root:
        Directory holding one sub-directory per preparation.
    """

    def __init__(self, workspace_root: Path) -> None:
        self._root = Path(workspace_root)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def workspace(self, preparation_id: str) -> Path:
        return self._root / preparation_id

    def manifest_path(self, preparation_id: str) -> Path:
        return self.workspace(preparation_id) / MANIFEST_NAME

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def allocate_workspace(self, commit_sha: str, now: datetime | None = None) -> str:
        """Create a fresh workspace directory and return its preparation id.

        If the time-derived id is already taken (two invocations within the
        same second), a numeric suffix is appended until ``mkdir`` succeeds.
        """
        base_id = make_preparation_id(commit_sha, now)
        candidate = base_id
        attempt = 1
        while True:
            try:
                self.workspace(candidate).mkdir(parents=True, exist_ok=False)
                return candidate
            except FileExistsError:
                attempt += 1
                candidate = f"{base_id}-{attempt}"

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def save(self, record: PreparationRecord) -> PreparationRecord:
        path = self.manifest_path(record.preparation_id)
        atomic_write_bytes(path, canonical_json_bytes(record.model_dump(mode="json")))
        logger.debug("Manifest written: %s (%s)", path, record.status.value)
        return record

    def load(self, preparation_id: str) -> PreparationRecord:
        """Read a record from disk.

        Raises
        ------
        PreparationNotFound
            If the workspace or its manifest does not exist.
        ManifestError
            If the manifest is not valid JSON or fails validation.
        """
        path = self.manifest_path(preparation_id)
        if not path.is_file():
            raise PreparationNotFound(
                f"Preparation manifest not found for {preparation_id}"
            )
        try:
            return PreparationRecord.model_validate_json(path.read_bytes())
        except (ValidationError, json.JSONDecodeError) as exc:
            raise ManifestError(f"Invalid manifest {path}: {exc}") from exc

    def exists(self, preparation_id: str) -> bool:
        return self.manifest_path(preparation_id).is_file()

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def list_records(self) -> list[PreparationRecord]:
        """All readable records, oldest first. Unreadable manifests are skipped."""
        records: list[PreparationRecord] = []
        for path in self._root.glob(f"{ID_PREFIX}*/{MANIFEST_NAME}"):
            try:
                records.append(self.load(path.parent.name))
            except ManifestError as exc:
                logger.warning("Skipping unreadable manifest: %s", exc)
        records.sort(key=lambda r: (r.prepared_at, r.preparation_id))
        return records

    def find_latest_for_commit(self, commit_sha: str) -> PreparationRecord:
        """Newest preparation whose commit matches *commit_sha*.

        *commit_sha* may be abbreviated; it matches records whose full
        commit starts with it. Concurrent preparations for the same commit
        are not deduplicated, the newest one wins.
        """
        wanted = commit_sha.strip().lower()
        matches = [r for r in self.list_records() if r.commit_sha.lower().startswith(wanted)]
        if not wanted or not matches:
            raise PreparationNotFound(
                f"No preparation found for commit {commit_sha}. Run prepare first."
            )
        return matches[-1]

    def find_latest(self) -> PreparationRecord:
        records = self.list_records()
        if not records:
            raise PreparationNotFound("No preparations exist yet. Run prepare first.")
        return records[-1]

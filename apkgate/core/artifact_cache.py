"""APK artifact cache with metadata, a "latest" alias and retention.

Storage layout::

    {cache_dir}/{name}          the package, named {stem}-{preparation_id}{suffix}
    {cache_dir}/{name}.meta     JSON metadata (CachedArtifact)
    {cache_dir}/latest.apk      symlink to the newest successfully cached package

The alias is only repointed after both the package copy and its metadata are
fully written, and it is swapped with a single ``os.replace``.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from apkgate.core.hasher import canonical_json_bytes, file_checksum
from apkgate.errors import ArtifactNotFound, CacheWriteFailed
from apkgate.models.artifacts import CachedArtifact

logger = logging.getLogger(__name__)

LATEST_ALIAS = "latest.apk"
META_SUFFIX = ".meta"

_SIZE_UNITS = {"": 1, "B": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT]?)(?:I?B)?\s*$", re.IGNORECASE)


def parse_size(value: str | int) -> int:
    """Parse ``"1G"``, ``"512M"``, ``"2048"`` into a byte count (1024-based).

    >>> parse_size("1K")
    1024
    """
    if isinstance(value, int):
        return value
    match = _SIZE_RE.match(value)
    if not match:
        raise ValueError(f"Unrecognized size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit.upper()])


class ArtifactCache:
    """Holds built packages and enforces retention.

    Parameters
    ----------
    cache_dir:
        Directory the packages, metadata and alias live in.
    """

    def __init__(self, cache_dir: Path) -> None:
        self._dir = Path(cache_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def alias_path(self) -> Path:
        return self._dir / LATEST_ALIAS

    def _meta_path(self, name: str) -> Path:
        return self._dir / f"{name}{META_SUFFIX}"

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def _cached_name(self, preparation_id: str, source: Path) -> str:
        """``app-debug.apk`` built by ``prep-X`` is cached as ``app-debug-prep-X.apk``."""
        return f"{source.stem}-{preparation_id}{source.suffix}"

    def _stage_path(self, name: str) -> Path:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self._dir)
        os.close(fd)
        return Path(tmp_name)

    def store(
        self,
        preparation_id: str,
        artifact_path: Path,
        *,
        created_at: datetime | None = None,
    ) -> CachedArtifact:
        """Copy a built package into the cache and make it "latest".

        The package and its metadata are both staged under temporary names
        first. Nothing already in the cache is touched until both are fully
        written.

        Raises
        ------
        CacheWriteFailed
            If the package cannot be copied or its metadata cannot be
            written. Staged files are removed; cached packages, their
            metadata and the alias are left as they were.
        """
        source = Path(artifact_path)
        name = self._cached_name(preparation_id, source)
        if name == LATEST_ALIAS or name.endswith(META_SUFFIX) or Path(name).name != name:
            raise CacheWriteFailed(f"Refusing to cache reserved name: {name}")

        target = self._dir / name
        meta_path = self._meta_path(name)
        staged: list[Path] = []
        try:
            staged_package = self._stage_path(name)
            staged.append(staged_package)
            shutil.copyfile(source, staged_package)

            artifact = CachedArtifact(
                preparation_id=preparation_id,
                name=name,
                path=str(target),
                size_bytes=staged_package.stat().st_size,
                checksum=file_checksum(staged_package),
                created_at=created_at or datetime.now(timezone.utc),
            )
            staged_meta = self._stage_path(meta_path.name)
            staged.append(staged_meta)
            with open(staged_meta, "wb") as fh:
                fh.write(canonical_json_bytes(artifact.model_dump(mode="json")))
                fh.flush()
                os.fsync(fh.fileno())

            os.replace(staged_package, target)
            os.replace(staged_meta, meta_path)
        except OSError as exc:
            for path in staged:
                path.unlink(missing_ok=True)
            raise CacheWriteFailed(f"Could not cache {source}: {exc}") from exc

        self._point_latest_at(name)
        logger.info("APK cached: %s (%d bytes, %s)", target, artifact.size_bytes, artifact.checksum)
        return artifact

    def _point_latest_at(self, name: str) -> None:
        """Atomically swap the alias to *name* (relative symlink)."""
        tmp_link = self._dir / f".{LATEST_ALIAS}.{os.getpid()}.tmp"
        tmp_link.unlink(missing_ok=True)
        try:
            tmp_link.symlink_to(name)
            os.replace(tmp_link, self.alias_path)
        except OSError as exc:
            tmp_link.unlink(missing_ok=True)
            raise CacheWriteFailed(f"Could not update latest alias: {exc}") from exc

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def list(self) -> list[CachedArtifact]:
        """All cached artifacts, oldest first (most recent last)."""
        artifacts: list[CachedArtifact] = []
        for meta in self._dir.glob(f"*{META_SUFFIX}"):
            try:
                artifact = CachedArtifact.model_validate_json(meta.read_bytes())
            except (ValidationError, OSError) as exc:
                logger.warning("Skipping unreadable metadata %s: %s", meta, exc)
                continue
            if not (self._dir / artifact.name).is_file():
                logger.warning("Metadata without package, skipping: %s", meta)
                continue
            artifacts.append(artifact)
        artifacts.sort(key=lambda a: (a.created_at, a.name))
        return artifacts

    def latest_name(self) -> str | None:
        """Name the alias points at, or None if there is no usable alias."""
        alias = self.alias_path
        if not alias.is_symlink():
            return None
        target = Path(os.readlink(alias)).name
        if not (self._dir / target).is_file():
            logger.warning("Latest alias is dangling: %s", target)
            return None
        return target

    def latest(self) -> CachedArtifact | None:
        name = self.latest_name()
        if name is None:
            return None
        try:
            return self.get(name)
        except ArtifactNotFound:
            return None

    def _entry(self, name: str) -> Path:
        """Path of a cached package; names that leave the cache are not found."""
        if not name or name in (".", "..") or Path(name).name != name or os.sep in name:
            raise ArtifactNotFound(f"APK not found: {name}")
        return self._dir / name

    def get(self, name: str) -> CachedArtifact:
        package = self._entry(name)
        meta = self._meta_path(name)
        if not meta.is_file() or not package.is_file():
            raise ArtifactNotFound(f"APK not found: {name}")
        return CachedArtifact.model_validate_json(meta.read_bytes())

    def total_size(self) -> int:
        return sum(a.size_bytes for a in self.list())

    def fetch(self, name: str, destination: Path) -> Path:
        """Copy a cached package (or ``"latest"``) to *destination*.

        *destination* may be a directory or a file path. Returns the path
        written.

        Raises
        ------
        ArtifactNotFound
            If *name* is not a package in the cache.
        CacheWriteFailed
            If the copy to *destination* fails.
        """
        if name in ("latest", LATEST_ALIAS):
            resolved = self.latest_name()
            if resolved is None:
                raise ArtifactNotFound("No latest APK available")
            name = resolved
        source = self._entry(name)
        if not source.is_file() or name.endswith(META_SUFFIX):
            raise ArtifactNotFound(f"APK not found: {name}")

        destination = Path(destination)
        target = destination / name if destination.is_dir() else destination
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            raise CacheWriteFailed(f"Could not copy {name} to {target}: {exc}") from exc
        logger.info("APK copied to: %s", target)
        return target

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def _remove(self, artifact: CachedArtifact) -> None:
        (self._dir / artifact.name).unlink(missing_ok=True)
        self._meta_path(artifact.name).unlink(missing_ok=True)
        logger.info("Evicted cached APK: %s", artifact.name)

    def retain(
        self,
        max_age_days: float,
        max_total_size: int | str | None = None,
        *,
        now: datetime | None = None,
    ) -> list[CachedArtifact]:
        """Evict old artifacts, then the oldest ones until under budget.

        The artifact behind the "latest" alias is never evicted, and the
        cache is never emptied: if an eviction would do either, it is
        skipped with a warning. Returns the evicted artifacts.
        """
        now = now or datetime.now(timezone.utc)
        budget = parse_size(max_total_size) if max_total_size is not None else None
        latest = self.latest_name()
        remaining = self.list()
        evicted: list[CachedArtifact] = []

        def _evictable(artifact: CachedArtifact) -> bool:
            if artifact.name == latest:
                logger.warning(
                    "Retention: keeping %s, it is the latest APK", artifact.name
                )
                return False
            if len(remaining) <= 1:
                logger.warning(
                    "Retention: keeping %s, it is the only cached APK", artifact.name
                )
                return False
            return True

        for artifact in list(remaining):
            if artifact.age_days(now) > max_age_days and _evictable(artifact):
                self._remove(artifact)
                remaining.remove(artifact)
                evicted.append(artifact)

        if budget is not None:
            for artifact in list(remaining):
                if sum(a.size_bytes for a in remaining) <= budget:
                    break
                if _evictable(artifact):
                    self._remove(artifact)
                    remaining.remove(artifact)
                    evicted.append(artifact)
            total = sum(a.size_bytes for a in remaining)
            if total > budget:
                logger.warning(
                    "Retention: cache is %d bytes, over the %d byte budget", total, budget
                )

        logger.info(
            "APK cache cleanup completed: %d evicted, %d kept (%d bytes)",
            len(evicted), len(remaining), sum(a.size_bytes for a in remaining),
        )
        return evicted

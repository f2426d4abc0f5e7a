"""Build trigger gate — the manual entry point from a ready workspace to a build.

The gate refuses any record not in ``ready-for-build``, even when the caller
names the preparation explicitly. Once past the gate the record moves to
``building`` and the build is delegated to remote CI, falling back to the
local executor.
"""

from __future__ import annotations

import logging
from pathlib import Path

from apkgate.bridge.remote_ci import RemoteCIDelegate
from apkgate.config import AgentSettings
from apkgate.core.artifact_cache import ArtifactCache
from apkgate.core.progress_monitor import ProgressMonitor
from apkgate.core.state_machine import PreparationStateMachine
from apkgate.core.toolchain import LocalBuildExecutor
from apkgate.errors import BuildFailed, CacheWriteFailed, PreparationNotReady
from apkgate.models.artifacts import CachedArtifact
from apkgate.models.outcomes import BuildOutcome, NotificationKind
from apkgate.models.preparation import (
    BUILD_SETTLED,
    PreparationRecord,
    PreparationStatus,
)
from apkgate.routing.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class BuildTriggerGate:
    """Validates a preparation and runs its build.

    Parameters
    ----------
    settings:
        Agent settings.
    machine:
        State machine owning the manifests.
    delegate:
        Remote CI trigger backend.
    monitor:
        Poll loop used while a remote build runs.
    executor:
        Local build executor for the fallback path.
    cache:
        Artifact cache successful builds are stored in.
    dispatcher:
        Notification fan-out.
    """

    def __init__(
        self,
        settings: AgentSettings,
        machine: PreparationStateMachine,
        delegate: RemoteCIDelegate,
        monitor: ProgressMonitor,
        executor: LocalBuildExecutor,
        cache: ArtifactCache,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._settings = settings
        self._machine = machine
        self._delegate = delegate
        self._monitor = monitor
        self._executor = executor
        self._cache = cache
        self._dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    def resolve(self, commit_sha: str | None, preparation_id: str | None = None) -> PreparationRecord:
        """Find the record a build request refers to.

        An explicit id wins; otherwise the newest preparation for the commit,
        or the newest preparation overall when no commit is given.
        """
        store = self._machine.store
        if preparation_id:
            return store.load(preparation_id)
        if commit_sha:
            return store.find_latest_for_commit(commit_sha)
        return store.find_latest()

    def check_ready(self, record: PreparationRecord) -> None:
        if record.status != PreparationStatus.READY_FOR_BUILD:
            raise PreparationNotReady(record.preparation_id, record.status.value)

    def trigger_build(
        self, commit_sha: str | None, preparation_id: str | None = None
    ) -> BuildOutcome:
        """Run a build for a ready preparation.

        Raises
        ------
        PreparationNotFound
            No matching preparation.
        PreparationNotReady
            The preparation is not in ``ready-for-build``. Nothing runs.
        """
        record = self.resolve(commit_sha, preparation_id)
        logger.info(
            "Triggering MANUAL APK build for commit %s (preparation %s)",
            record.commit_sha, record.preparation_id,
        )
        self.check_ready(record)
        logger.info("Environment verified as ready. Triggering APK build...")

        record = self._machine.transition(record.preparation_id, PreparationStatus.BUILDING)

        if self._delegate.trigger("build", record.build_type, notify=True):
            logger.info("Manual APK build triggered on remote CI")
            self._machine.update_flags(record.preparation_id, delegated=True)
            return self._await_remote(record.preparation_id)

        logger.warning("Remote trigger failed, attempting local build")
        return self._build_locally(record)

    # ------------------------------------------------------------------
    # Remote path
    # ------------------------------------------------------------------

    def _await_remote(self, preparation_id: str) -> BuildOutcome:
        settled = self._monitor.await_terminal(
            lambda: self._machine.status_of(preparation_id) in BUILD_SETTLED,
            timeout_seconds=self._settings.build_timeout_seconds,
            poll_interval_seconds=self._settings.poll_interval_seconds,
            label=f"build {preparation_id}",
        )
        record = self._machine.current(preparation_id)
        if not settled:
            logger.warning("Build %s stalled in %s", preparation_id, record.status.value)
            return BuildOutcome(
                preparation_id=preparation_id,
                status=record.status,
                delegated=True,
                timed_out=True,
            )

        artifact = None
        if record.status == PreparationStatus.BUILD_COMPLETE and record.artifact_path:
            produced = Path(record.artifact_path)
            if produced.is_file():
                artifact = self._cache_artifact(preparation_id, produced)
            else:
                logger.info("Remote build artifact %s not available locally", produced)
        return BuildOutcome(
            preparation_id=preparation_id,
            status=record.status,
            delegated=True,
            artifact=artifact,
        )

    # ------------------------------------------------------------------
    # Local path
    # ------------------------------------------------------------------

    def _build_locally(self, record: PreparationRecord) -> BuildOutcome:
        preparation_id = record.preparation_id
        workspace = self._machine.store.workspace(preparation_id)
        logger.info("Performing local APK build from preparation: %s", preparation_id)

        try:
            result = self._executor.build(record, workspace)
        except BuildFailed as exc:
            logger.error("Local APK build failed: %s", exc)
            failed = self._machine.transition(preparation_id, PreparationStatus.BUILD_FAILED)
            self._dispatcher.notify(
                NotificationKind.BUILD_FAILED, failed, self._settings, str(exc)
            )
            return BuildOutcome(
                preparation_id=preparation_id,
                status=failed.status,
                error=str(exc),
            )

        complete = self._machine.transition(
            preparation_id,
            PreparationStatus.BUILD_COMPLETE,
            artifact_path=str(result.artifact_path),
        )
        artifact = self._cache_artifact(preparation_id, result.artifact_path)
        detail = "SIMULATED build (no Android SDK): placeholder package" if result.simulated else None
        self._dispatcher.notify(NotificationKind.BUILD_SUCCESS, complete, self._settings, detail)
        return BuildOutcome(
            preparation_id=preparation_id,
            status=complete.status,
            simulated=result.simulated,
            artifact=artifact,
        )

    def _cache_artifact(self, preparation_id: str, path: Path) -> CachedArtifact | None:
        """Store a successful build; cache trouble never undoes the build."""
        try:
            artifact = self._cache.store(preparation_id, path)
        except CacheWriteFailed as exc:
            logger.error("APK build succeeded but caching failed: %s", exc)
            return None
        try:
            self._cache.retain(
                self._settings.retention_days, self._settings.max_cache_size
            )
        except (OSError, ValueError) as exc:
            logger.error("APK cache cleanup failed: %s", exc)
        return artifact

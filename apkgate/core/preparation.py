"""Preparation orchestrator — readies a workspace for a commit without building.

Flow for every ``prepare(commit)``:

1. Allocate a workspace and persist a new record in ``preparing``.
2. Try to delegate the ``prepare`` action to remote CI. If accepted, wait on
   the manifest until the remote job publishes a settled status.
3. Otherwise validate locally: probe the toolchain (non-fatal), stage the
   project skeleton (fatal on failure), then mark the record ready or failed
   and send a notification.
"""

from __future__ import annotations

import logging

from apkgate.bridge.remote_ci import RemoteCIDelegate
from apkgate.config import AgentSettings
from apkgate.core.progress_monitor import ProgressMonitor
from apkgate.core.state_machine import PreparationStateMachine
from apkgate.core.toolchain import ProjectStager, ToolchainProbe
from apkgate.errors import StagingFailed, ToolchainMissing
from apkgate.models.outcomes import NotificationKind
from apkgate.models.preparation import (
    PREPARATION_SETTLED,
    PreparationRecord,
    PreparationStatus,
)
from apkgate.routing.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class PreparationOrchestrator:
    """Creates preparation records and drives them to a settled status.

    Parameters
    ----------
    settings:
        Agent settings (repository, branch, build type, timeouts).
    machine:
        State machine owning the manifests.
    delegate:
        Remote CI trigger backend.
    monitor:
        Poll loop used while a remote job is preparing.
    dispatcher:
        Notification fan-out.
    probe, stager:
        Local toolchain probe and project stager for the fallback path.
    """

    def __init__(
        self,
        settings: AgentSettings,
        machine: PreparationStateMachine,
        delegate: RemoteCIDelegate,
        monitor: ProgressMonitor,
        dispatcher: NotificationDispatcher,
        probe: ToolchainProbe | None = None,
        stager: ProjectStager | None = None,
    ) -> None:
        self._settings = settings
        self._machine = machine
        self._delegate = delegate
        self._monitor = monitor
        self._dispatcher = dispatcher
        self._probe = probe or ToolchainProbe(settings)
        self._stager = stager or ProjectStager(settings)

    def prepare(self, commit_sha: str) -> PreparationRecord:
        """Prepare a build environment for *commit_sha*.

        Always creates exactly one new record. Returns the record as it
        stands when this call finishes; after a remote-wait timeout that may
        still be ``preparing``.
        """
        logger.info("Preparing APK build environment for commit: %s", commit_sha)
        store = self._machine.store
        preparation_id = store.allocate_workspace(commit_sha)
        record = self._machine.create(
            PreparationRecord(
                preparation_id=preparation_id,
                commit_sha=commit_sha,
                build_type=self._settings.build_type,
                repository=self._settings.github_repo,
                branch=self._settings.github_branch,
            )
        )

        if self._delegate.trigger("prepare", self._settings.build_type, notify=True):
            logger.info("Remote preparation triggered successfully")
            self._machine.update_flags(preparation_id, delegated=True)
            return self._await_remote(preparation_id)

        logger.warning("Remote trigger failed, performing local preparation")
        return self._prepare_locally(record)

    # ------------------------------------------------------------------
    # Remote path
    # ------------------------------------------------------------------

    def _await_remote(self, preparation_id: str) -> PreparationRecord:
        settled = self._monitor.await_terminal(
            lambda: self._machine.status_of(preparation_id) in PREPARATION_SETTLED,
            timeout_seconds=self._settings.build_timeout_seconds,
            poll_interval_seconds=self._settings.poll_interval_seconds,
            label=f"preparation {preparation_id}",
        )
        record = self._machine.current(preparation_id)
        if not settled:
            logger.warning(
                "Preparation %s stalled in %s; a later run may still observe it",
                preparation_id, record.status.value,
            )
        return record

    # ------------------------------------------------------------------
    # Local fallback
    # ------------------------------------------------------------------

    def _prepare_locally(self, record: PreparationRecord) -> PreparationRecord:
        preparation_id = record.preparation_id
        workspace = self._machine.store.workspace(preparation_id)
        logger.info("Performing local APK environment preparation: %s", preparation_id)
        self._machine.transition(preparation_id, PreparationStatus.VALIDATING)

        try:
            sdk = self._probe.require()
        except ToolchainMissing as exc:
            logger.warning("%s", exc)
        else:
            logger.info("Android SDK found: %s", sdk)
            self._machine.update_flags(preparation_id, environment_validated=True)

        try:
            self._stager.stage(workspace)
        except StagingFailed as exc:
            logger.error("APK build environment preparation failed: %s", exc)
            failed = self._machine.transition(
                preparation_id, PreparationStatus.PREPARATION_FAILED
            )
            self._dispatcher.notify(
                NotificationKind.PREPARATION_FAILED, failed, self._settings, str(exc)
            )
            return failed

        ready = self._machine.transition(
            preparation_id,
            PreparationStatus.READY_FOR_BUILD,
            dependencies_ready=True,
            build_ready=True,
        )
        logger.info(
            "APK build environment prepared successfully! Manual trigger required: "
            "apkgate build %s", ready.commit_sha,
        )
        self._dispatcher.notify(NotificationKind.PREPARATION_READY, ready, self._settings)
        return ready

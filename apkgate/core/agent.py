"""Build agent — wires the detector, orchestrator, gate and cache together.

The agent is built once from an ``AgentSettings`` value and exposes one
method per command: detect, monitor, prepare, build, list, fetch, retention
and health.
"""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from apkgate.bridge.github import GitHubClient
from apkgate.bridge.remote_ci import RemoteCIDelegate, build_delegate
from apkgate.config import AgentSettings
from apkgate.core.artifact_cache import ArtifactCache, parse_size
from apkgate.core.build_gate import BuildTriggerGate
from apkgate.core.change_detector import (
    POINTER_FILE,
    RepositoryChangeDetector,
    RepositoryPointer,
)
from apkgate.core.manifest_store import ManifestStore
from apkgate.core.preparation import PreparationOrchestrator
from apkgate.core.progress_monitor import ProgressMonitor
from apkgate.core.state_machine import PreparationStateMachine
from apkgate.core.toolchain import LocalBuildExecutor, ProjectStager, ToolchainProbe
from apkgate.errors import ApiUnavailable, CommitNotFound
from apkgate.models.artifacts import CachedArtifact
from apkgate.models.outcomes import BuildOutcome
from apkgate.models.preparation import PreparationRecord
from apkgate.models.repository import DetectionResult
from apkgate.routing import build_dispatcher
from apkgate.routing.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class HealthCheck:
    name: str
    ok: bool
    detail: str
    fatal: bool = True


@dataclass
class HealthReport:
    checks: list[HealthCheck] = field(default_factory=list)

    @property
    def issues(self) -> int:
        return sum(1 for c in self.checks if c.fatal and not c.ok)

    @property
    def healthy(self) -> bool:
        return self.issues == 0


class BuildAgent:
    """Facade over every agent component.

    Parameters
    ----------
    settings:
        The single configuration value for this invocation.
    client, delegate, dispatcher, monitor, executor:
        Optional overrides; defaults are built from *settings*.
    """

    def __init__(
        self,
        settings: AgentSettings,
        *,
        client: GitHubClient | None = None,
        delegate: RemoteCIDelegate | None = None,
        dispatcher: NotificationDispatcher | None = None,
        monitor: ProgressMonitor | None = None,
        executor: LocalBuildExecutor | None = None,
    ) -> None:
        self.settings = settings
        settings.ensure_directories()

        self.client = client or GitHubClient(settings)
        self.delegate = delegate or build_delegate(settings, self.client)
        self.dispatcher = dispatcher or build_dispatcher(settings)
        self.monitor = monitor or ProgressMonitor()
        self.probe = ToolchainProbe(settings)

        self.store = ManifestStore(settings.workspace_dir)
        self.machine = PreparationStateMachine(self.store)
        self.cache = ArtifactCache(settings.cache_dir)
        self.detector = RepositoryChangeDetector(
            self.client, RepositoryPointer(settings.config_dir / POINTER_FILE)
        )
        self.orchestrator = PreparationOrchestrator(
            settings,
            self.machine,
            self.delegate,
            self.monitor,
            self.dispatcher,
            probe=self.probe,
            stager=ProjectStager(settings),
        )
        self.gate = BuildTriggerGate(
            settings,
            self.machine,
            self.delegate,
            self.monitor,
            executor or LocalBuildExecutor(settings, self.probe),
            self.cache,
            self.dispatcher,
        )

    # ------------------------------------------------------------------
    # Detection and monitoring
    # ------------------------------------------------------------------

    def detect_change(self) -> tuple[DetectionResult, PreparationRecord | None]:
        """One detection pass; prepares automatically on a new commit."""
        result = self.detector.detect()
        record = None
        if result.changed and self.settings.auto_prepare_on_push:
            record = self.orchestrator.prepare(result.commit)
        return result, record

    def start_monitoring(
        self,
        interval: float | None = None,
        *,
        max_cycles: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> int:
        """Run detection passes every *interval* seconds.

        Runs until interrupted, or for *max_cycles* passes. Lookup failures
        are logged and the loop carries on. Returns the number of passes
        that saw a change.
        """
        interval = interval if interval is not None else self.settings.monitor_interval_seconds
        logger.info("Starting continuous monitoring mode (interval: %ss)", interval)
        cycles = 0
        changes = 0
        try:
            while max_cycles is None or cycles < max_cycles:
                cycles += 1
                try:
                    result, _ = self.detect_change()
                except (ApiUnavailable, CommitNotFound) as exc:
                    logger.warning("Cannot monitor repository: %s", exc)
                else:
                    if result.changed:
                        changes += 1
                        logger.info("Changes detected, preparation started")
                if max_cycles is not None and cycles >= max_cycles:
                    break
                sleep(interval)
        except KeyboardInterrupt:
            logger.info("Agent shutting down...")
        return changes

    # ------------------------------------------------------------------
    # Prepare / build
    # ------------------------------------------------------------------

    def prepare(self, commit_sha: str | None = None) -> PreparationRecord:
        """Prepare for *commit_sha*, or for the current branch head."""
        return self.orchestrator.prepare(commit_sha or self.detector.current_head())

    def build(
        self, commit_sha: str | None = None, preparation_id: str | None = None
    ) -> BuildOutcome:
        return self.gate.trigger_build(commit_sha, preparation_id)

    def list_preparations(self) -> list[PreparationRecord]:
        return self.store.list_records()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def list_artifacts(self) -> list[CachedArtifact]:
        return self.cache.list()

    def fetch_artifact(self, name: str, destination: Path) -> Path:
        return self.cache.fetch(name, destination)

    def run_retention(
        self, max_age_days: float | None = None, max_size: str | None = None
    ) -> list[CachedArtifact]:
        logger.info("Cleaning up APK cache")
        return self.cache.retain(
            max_age_days if max_age_days is not None else self.settings.retention_days,
            max_size if max_size is not None else self.settings.max_cache_size,
        )

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health_check(self, which: Callable[[str], str | None] = shutil.which) -> HealthReport:
        logger.info("Performing health check")
        report = HealthReport()
        s = self.settings

        for label, path in (
            ("log dir", s.log_dir),
            ("config dir", s.config_dir),
            ("cache dir", s.cache_dir),
            ("workspace dir", s.workspace_dir),
        ):
            report.checks.append(HealthCheck(label, path.is_dir(), str(path)))

        report.checks.append(
            HealthCheck("repository", bool(s.github_repo), s.github_repo or "not configured")
        )
        try:
            parse_size(s.max_cache_size)
            report.checks.append(HealthCheck("cache budget", True, s.max_cache_size))
        except ValueError as exc:
            report.checks.append(HealthCheck("cache budget", False, str(exc)))

        for cmd in ("git", "gh"):
            found = which(cmd)
            report.checks.append(
                HealthCheck(f"{cmd} command", bool(found), found or "not on PATH", fatal=False)
            )

        sdk = self.probe.locate()
        report.checks.append(
            HealthCheck(
                "android sdk",
                sdk is not None,
                str(sdk) if sdk else "not found (builds will be simulated locally)",
                fatal=False,
            )
        )
        reachable = self.client.is_reachable()
        report.checks.append(
            HealthCheck(
                "github api",
                reachable,
                s.github_api_url if reachable else "not accessible",
                fatal=False,
            )
        )

        if report.healthy:
            logger.info("Health check passed")
        else:
            logger.error("Health check failed with %d issues", report.issues)
        return report

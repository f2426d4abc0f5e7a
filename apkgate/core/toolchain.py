"""Local Android toolchain: SDK probe, project staging and the local builder.

The agent relies on remote CI for real compiles. Locally it only needs to
stage a project skeleton, and when no SDK is present the local builder
produces a clearly labelled simulated package so the cache and notification
paths still run.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from apkgate.config import AgentSettings
from apkgate.errors import BuildFailed, StagingFailed, ToolchainMissing
from apkgate.models.preparation import PreparationRecord

logger = logging.getLogger(__name__)

ANDROID_DIR = "android"
SKELETON_DIRS = (
    "app/src/main/res/layout",
    "app/src/main/res/values",
    "app/src/main/assets/scripts",
)
ASSET_SCRIPTS = "app/src/main/assets/scripts"

CommandRunner = Callable[..., subprocess.CompletedProcess]


class ToolchainProbe:
    """Locates the Android SDK from settings."""

    def __init__(self, settings: AgentSettings) -> None:
        self._settings = settings

    def locate(self) -> Path | None:
        home = self._settings.android_home
        if home is None:
            return None
        home = Path(home).expanduser()
        return home if home.is_dir() else None

    def require(self) -> Path:
        """Return the SDK path or raise ``ToolchainMissing``."""
        sdk = self.locate()
        if sdk is None:
            raise ToolchainMissing(
                "Android SDK not found locally (will use remote CI for build)"
            )
        return sdk


class ProjectStager:
    """Stages the Android project skeleton into a preparation workspace."""

    def __init__(self, settings: AgentSettings) -> None:
        self._settings = settings

    def _package_dir(self) -> str:
        return "app/src/main/java/" + self._settings.android_package.replace(".", "/")

    def stage(self, workspace: Path) -> Path:
        """Create the skeleton and copy auxiliary scripts into its assets.

        Returns the ``android`` project directory.

        Raises
        ------
        StagingFailed
            If any directory cannot be created or a script cannot be copied.
        """
        project = Path(workspace) / ANDROID_DIR
        logger.info("Creating Android project structure in %s", project)
        try:
            for rel in (self._package_dir(), *SKELETON_DIRS):
                (project / rel).mkdir(parents=True, exist_ok=True)
            copied = self._copy_scripts(project / ASSET_SCRIPTS)
        except OSError as exc:
            raise StagingFailed(f"Failed to create Android project structure: {exc}") from exc

        logger.info("Android project structure created (%d scripts staged)", copied)
        return project

    def _copy_scripts(self, assets: Path) -> int:
        scripts_dir = self._settings.scripts_dir
        if scripts_dir is None:
            return 0
        scripts_dir = Path(scripts_dir).expanduser()
        if not scripts_dir.is_dir():
            logger.info("Scripts directory %s not present, nothing to stage", scripts_dir)
            return 0
        count = 0
        for script in sorted(scripts_dir.glob("*.sh")):
            shutil.copy2(script, assets / script.name)
            count += 1
        return count


@dataclass(frozen=True)
class BuildResult:
    """A package the local builder produced."""

    artifact_path: Path
    simulated: bool


class LocalBuildExecutor:
    """Builds the staged project locally, or simulates it without an SDK.

    Parameters
    ----------
    settings:
        Agent settings (build type, app name, timeout).
    probe:
        Toolchain probe deciding between a real and a simulated build.
    runner:
        Subprocess runner, ``subprocess.run`` by default.
    """

    def __init__(
        self,
        settings: AgentSettings,
        probe: ToolchainProbe | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self._settings = settings
        self._probe = probe or ToolchainProbe(settings)
        self._runner = runner or subprocess.run

    def build(self, record: PreparationRecord, workspace: Path) -> BuildResult:
        sdk = self._probe.locate()
        if sdk is None:
            return self._simulate(record, workspace)
        return self._gradle_build(record, workspace, sdk)

    # ------------------------------------------------------------------
    # Simulated build
    # ------------------------------------------------------------------

    def _simulate(self, record: PreparationRecord, workspace: Path) -> BuildResult:
        logger.warning(
            "SIMULATED BUILD: no Android SDK detected, producing a placeholder "
            "package for %s. This is not a real APK.",
            record.preparation_id,
        )
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        name = f"{self._settings.app_name}-{stamp}-{record.build_type}.apk"
        target = Path(workspace) / name
        content = "\n".join([
            f"Mock {self._settings.app_name} APK - Preparation ID: {record.preparation_id}",
            f"Commit: {record.commit_sha}",
            f"Generated: {datetime.now(timezone.utc).isoformat()}",
            f"Build Type: {record.build_type}",
            "",
        ])
        try:
            with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                zf.writestr("mock_content.txt", content)
        except OSError as exc:
            raise BuildFailed(f"Could not write simulated package: {exc}") from exc
        logger.info("Mock APK created: %s", target)
        return BuildResult(artifact_path=target, simulated=True)

    # ------------------------------------------------------------------
    # Real build
    # ------------------------------------------------------------------

    def _gradle_command(self, project: Path) -> list[str]:
        wrapper = project / "gradlew"
        if wrapper.is_file():
            return [str(wrapper)]
        gradle = shutil.which("gradle")
        if gradle:
            return [gradle]
        raise BuildFailed(
            f"No Gradle wrapper in {project} and no gradle on PATH"
        )

    def _gradle_build(
        self, record: PreparationRecord, workspace: Path, sdk: Path
    ) -> BuildResult:
        project = Path(workspace) / ANDROID_DIR
        if not project.is_dir():
            raise BuildFailed(f"Staged project missing: {project}")

        task = "assembleRelease" if record.build_type == "release" else "assembleDebug"
        cmd = [*self._gradle_command(project), task, "--no-daemon"]
        logger.info("Building APK: %s (ANDROID_HOME=%s)", " ".join(cmd), sdk)
        try:
            result = self._runner(
                cmd,
                cwd=project,
                capture_output=True,
                text=True,
                timeout=self._settings.build_timeout_seconds,
                env={**os.environ, "ANDROID_HOME": str(sdk), "ANDROID_SDK_ROOT": str(sdk)},
            )
        except (subprocess.SubprocessError, OSError) as exc:
            raise BuildFailed(f"Gradle invocation failed: {exc}") from exc

        if result.returncode != 0:
            tail = (result.stderr or result.stdout or "").strip().splitlines()[-20:]
            raise BuildFailed(
                f"Gradle exited with {result.returncode}: " + "\n".join(tail)
            )

        outputs = sorted(
            (project / "app" / "build" / "outputs" / "apk").rglob("*.apk"),
            key=lambda p: p.stat().st_mtime,
        )
        if not outputs:
            raise BuildFailed("Gradle succeeded but no APK was produced")
        logger.info("Local APK build completed: %s", outputs[-1])
        return BuildResult(artifact_path=outputs[-1], simulated=False)


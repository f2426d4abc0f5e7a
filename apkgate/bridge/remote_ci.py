"""Remote CI delegates — trigger the GitHub Actions workflow that builds APKs.

Defines the ``RemoteCIDelegate`` Protocol the orchestrator and gate talk to,
plus three backends:

1. ``GhCliDelegate`` — ``gh workflow run`` through the GitHub CLI.
2. ``GitHubApiDelegate`` — ``workflow_dispatch`` through the REST API.
3. ``DisabledDelegate`` — always declines, forcing local execution.

A delegate reports whether the *trigger* was accepted, never whether the job
eventually succeeded. Completion is observed by polling the manifest.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import requests

from apkgate.bridge.github import GitHubClient
from apkgate.config import AgentSettings

logger = logging.getLogger(__name__)

ACTIONS = ("prepare", "build")


@runtime_checkable
class RemoteCIDelegate(Protocol):
    """Protocol for remote CI trigger backends."""

    @property
    def name(self) -> str:
        ...

    def trigger(self, action: str, build_type: str, notify: bool = True) -> bool:
        """Ask the remote CI to run *action*. True if the trigger was accepted."""
        ...


def _workflow_inputs(action: str, build_type: str, notify: bool) -> dict[str, str]:
    if action not in ACTIONS:
        raise ValueError(f"Unknown CI action: {action!r}")
    return {
        "action": action,
        "build_type": build_type,
        "notify_completion": "true" if notify else "false",
    }


class DisabledDelegate:
    """Declines every trigger."""

    @property
    def name(self) -> str:
        return "none"

    def trigger(self, action: str, build_type: str, notify: bool = True) -> bool:
        logger.info("Remote CI disabled, %s will run locally", action)
        return False


class GhCliDelegate:
    """Triggers the workflow through an authenticated ``gh`` CLI.

    Parameters
    ----------
    settings:
        Supplies repository, branch and workflow file.
    runner:
        Subprocess runner, ``subprocess.run`` by default.
    which:
        Executable lookup, ``shutil.which`` by default.
    """

    def __init__(
        self,
        settings: AgentSettings,
        runner: Callable[..., subprocess.CompletedProcess] | None = None,
        which: Callable[[str], str | None] | None = None,
    ) -> None:
        self._settings = settings
        self._run = runner or subprocess.run
        self._which = which or shutil.which

    @property
    def name(self) -> str:
        return "gh"

    def _authenticated(self) -> bool:
        if not self._which("gh"):
            logger.warning("GitHub CLI not available")
            return False
        try:
            status = self._run(
                ["gh", "auth", "status"], capture_output=True, text=True, timeout=30
            )
        except (subprocess.SubprocessError, OSError) as exc:
            logger.warning("GitHub CLI auth check failed: %s", exc)
            return False
        if status.returncode != 0:
            logger.warning("GitHub CLI not authenticated")
            return False
        return True

    def trigger(self, action: str, build_type: str, notify: bool = True) -> bool:
        inputs = _workflow_inputs(action, build_type, notify)
        logger.info("Attempting to trigger GitHub Actions %s workflow", action)
        if not self._authenticated():
            return False

        cmd = [
            "gh", "workflow", "run", self._settings.workflow_file,
            "--repo", self._settings.github_repo,
            "--ref", self._settings.github_branch,
        ]
        for key, value in inputs.items():
            cmd += ["--field", f"{key}={value}"]

        try:
            result = self._run(cmd, capture_output=True, text=True, timeout=60)
        except (subprocess.SubprocessError, OSError) as exc:
            logger.error("Failed to trigger GitHub Actions %s workflow: %s", action, exc)
            return False
        if result.returncode != 0:
            logger.error(
                "Failed to trigger GitHub Actions %s workflow: %s",
                action, (result.stderr or "").strip(),
            )
            return False
        logger.info("GitHub Actions %s workflow triggered", action)
        return True


class GitHubApiDelegate:
    """Triggers the workflow with a ``workflow_dispatch`` REST call.

    Requires ``github_token``; without one the trigger is declined.
    """

    def __init__(self, settings: AgentSettings, client: GitHubClient | None = None) -> None:
        self._settings = settings
        self._client = client or GitHubClient(settings)

    @property
    def name(self) -> str:
        return "api"

    def trigger(self, action: str, build_type: str, notify: bool = True) -> bool:
        inputs = _workflow_inputs(action, build_type, notify)
        if not self._settings.github_token:
            logger.warning("No GitHub token configured, cannot dispatch %s workflow", action)
            return False
        path = (
            f"repos/{self._settings.github_repo}/actions/workflows/"
            f"{self._settings.workflow_file}/dispatches"
        )
        try:
            resp = self._client.post(
                path, {"ref": self._settings.github_branch, "inputs": inputs}
            )
        except requests.RequestException as exc:
            logger.error("Workflow dispatch for %s failed: %s", action, exc)
            return False
        if resp.status_code != 204:
            logger.error(
                "Workflow dispatch for %s rejected (HTTP %s)", action, resp.status_code
            )
            return False
        logger.info("GitHub Actions %s workflow dispatched", action)
        return True


def build_delegate(
    settings: AgentSettings, client: GitHubClient | None = None
) -> RemoteCIDelegate:
    """Select the delegate named by ``settings.remote_ci_backend``."""
    backend = settings.remote_ci_backend.lower()
    if backend == "gh":
        return GhCliDelegate(settings)
    if backend == "api":
        return GitHubApiDelegate(settings, client)
    if backend == "none":
        return DisabledDelegate()
    raise ValueError(f"Unknown remote_ci_backend: {settings.remote_ci_backend!r}")

"""Shared test fixtures for apkgate."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from apkgate.config import AgentSettings
from apkgate.core.agent import BuildAgent
from apkgate.core.artifact_cache import ArtifactCache
from apkgate.core.manifest_store import ManifestStore
from apkgate.core.progress_monitor import ProgressMonitor
from apkgate.core.state_machine import PreparationStateMachine
from apkgate.models.repository import CommitLookup, LookupState
from apkgate.routing.dispatcher import NotificationDispatcher
from apkgate.routing.sinks.local import LogSink

COMMIT_A = "a1b2c3d4e5f60718293a4b5c6d7e8f9012345678"
COMMIT_B = "b2c3d4e5f60718293a4b5c6d7e8f901234567890"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the host's SDK and APKGATE_* settings out of every test."""
    for key in list(os.environ):
        if key.startswith("APKGATE_") or key in ("ANDROID_HOME", "ANDROID_SDK_ROOT"):
            monkeypatch.delenv(key, raising=False)
    # No stray .env file from the working directory
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Manual clock: ``sleep`` advances ``now`` instead of blocking."""

    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: list[float] = []
        self.on_sleep: Callable[[float], None] | None = None

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds
        if self.on_sleep is not None:
            self.on_sleep(self.t)


class FakeDelegate:
    """Remote CI delegate that accepts or declines, recording every call."""

    def __init__(self, accept: bool = False, on_trigger: Callable[[str], None] | None = None) -> None:
        self.accept = accept
        self.on_trigger = on_trigger
        self.calls: list[tuple[str, str, bool]] = []

    @property
    def name(self) -> str:
        return "fake"

    def trigger(self, action: str, build_type: str, notify: bool = True) -> bool:
        self.calls.append((action, build_type, notify))
        if self.accept and self.on_trigger is not None:
            self.on_trigger(action)
        return self.accept


class FakeGitHubClient:
    """Serves a scripted sequence of branch-head lookups."""

    def __init__(self, *lookups: CommitLookup, reachable: bool = False) -> None:
        self.lookups = list(lookups)
        self.reachable = reachable
        self.repository = "spiralgang/FileSystemds"
        self.branch = "main"

    def set_head(self, sha: str) -> None:
        self.lookups = [CommitLookup(state=LookupState.OK, sha=sha)]

    def latest_commit(self, branch: str | None = None) -> CommitLookup:
        if len(self.lookups) > 1:
            return self.lookups.pop(0)
        return self.lookups[0]

    def is_reachable(self) -> bool:
        return self.reachable


class RecordingSink:
    def __init__(self, name: str = "recording", fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.received: list[Any] = []

    @property
    def sink_name(self) -> str:
        return self.name

    def accept(self, notification: Any) -> None:
        if self.fail:
            raise ConnectionError(f"{self.name} is down")
        self.received.append(notification)


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., AgentSettings]:
    """Factory fixture: settings rooted in the test's temp directory."""

    def _factory(**overrides: Any) -> AgentSettings:
        defaults: dict[str, Any] = {
            "home_dir": tmp_path / "ops",
            "remote_ci_backend": "none",
            "desktop_notifications": False,
            "android_home": None,
            "poll_interval_seconds": 30,
            "build_timeout_minutes": 10,
        }
        defaults.update(overrides)
        settings = AgentSettings(**defaults)
        settings.ensure_directories()
        return settings

    return _factory


@pytest.fixture
def settings(make_settings: Callable[..., AgentSettings]) -> AgentSettings:
    return make_settings()


@pytest.fixture
def store(settings: AgentSettings) -> ManifestStore:
    return ManifestStore(settings.workspace_dir)


@pytest.fixture
def machine(store: ManifestStore) -> PreparationStateMachine:
    return PreparationStateMachine(store)


@pytest.fixture
def cache(settings: AgentSettings) -> ArtifactCache:
    return ArtifactCache(settings.cache_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monitor(clock: FakeClock) -> ProgressMonitor:
    return ProgressMonitor(clock=clock.now, sleep=clock.sleep)


@pytest.fixture
def recorder() -> RecordingSink:
    return RecordingSink("recorder")


@pytest.fixture
def dispatcher(recorder: RecordingSink) -> NotificationDispatcher:
    d = NotificationDispatcher()
    d.register_sink(LogSink(desktop=False))
    d.register_sink(recorder)
    return d


@pytest.fixture
def github() -> FakeGitHubClient:
    return FakeGitHubClient(CommitLookup(state=LookupState.OK, sha=COMMIT_A))


@pytest.fixture
def make_agent(
    settings: AgentSettings,
    github: FakeGitHubClient,
    dispatcher: NotificationDispatcher,
    monitor: ProgressMonitor,
) -> Callable[..., BuildAgent]:
    """Factory fixture: an agent with no network and no remote CI."""

    def _factory(**overrides: Any) -> BuildAgent:
        kwargs: dict[str, Any] = {
            "client": github,
            "delegate": FakeDelegate(accept=False),
            "dispatcher": dispatcher,
            "monitor": monitor,
        }
        kwargs.update(overrides)
        s = kwargs.pop("settings", settings)
        return BuildAgent(s, **kwargs)

    return _factory


@pytest.fixture
def agent(make_agent: Callable[..., BuildAgent]) -> BuildAgent:
    return make_agent()


@pytest.fixture
def make_delegate() -> Callable[..., FakeDelegate]:
    return FakeDelegate


@pytest.fixture
def make_sink() -> Callable[..., RecordingSink]:
    return RecordingSink


@pytest.fixture
def make_github() -> Callable[..., FakeGitHubClient]:
    return FakeGitHubClient

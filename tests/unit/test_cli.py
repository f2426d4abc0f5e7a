"""Unit tests for the CLI — command registration and end-to-end command runs.

Every invocation points APKGATE_HOME_DIR at a temp directory, disables
remote CI and aims the GitHub API at a closed local port, so nothing leaves
the machine.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from apkgate.cli.app import app

runner = CliRunner()

SHA = "a1b2c3d4e5f60718293a4b5c6d7e8f9012345678"

COMMANDS = [
    "detect-change",
    "start-monitoring",
    "prepare",
    "build",
    "list-preparations",
    "list-artifacts",
    "fetch-artifact",
    "run-retention",
    "health-check",
    "config",
]


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "ops"
    monkeypatch.setenv("APKGATE_HOME_DIR", str(home))
    monkeypatch.setenv("APKGATE_REMOTE_CI_BACKEND", "none")
    monkeypatch.setenv("APKGATE_DESKTOP_NOTIFICATIONS", "false")
    monkeypatch.setenv("APKGATE_GITHUB_API_URL", "http://127.0.0.1:9")
    monkeypatch.setenv("APKGATE_HTTP_TIMEOUT_SECONDS", "1")
    return home


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        # Typer's no_args_is_help may exit with 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in COMMANDS:
            assert name in result.output

    @pytest.mark.parametrize("name", COMMANDS)
    def test_command_help(self, name: str):
        result = runner.invoke(app, [name, "--help"])
        assert result.exit_code == 0


class TestPrepareAndBuild:
    def test_prepare_then_build(self, home: Path):
        result = runner.invoke(app, ["prepare", SHA])
        assert result.exit_code == 0, result.output
        assert "ready-for-build" in result.output
        assert "MANUAL TRIGGER REQUIRED" in result.output

        result = runner.invoke(app, ["build", SHA])
        assert result.exit_code == 0, result.output
        assert "build-complete" in result.output
        assert "SIMULATED" in result.output

        assert (home / "apk_cache" / "latest.apk").is_symlink()
        assert (home / "logs" / "apkgate.log").is_file()

    def test_build_twice_is_refused(self, home: Path):
        runner.invoke(app, ["prepare", SHA])
        runner.invoke(app, ["build", SHA])
        result = runner.invoke(app, ["build", SHA])
        assert result.exit_code == 1
        assert "PreparationNotReady" in result.output

    def test_build_without_preparation(self, home: Path):
        result = runner.invoke(app, ["build", SHA])
        assert result.exit_code == 1
        assert "PreparationNotFound" in result.output

    def test_list_preparations(self, home: Path):
        result = runner.invoke(app, ["list-preparations"])
        assert result.exit_code == 0
        assert "No preparations found" in result.output

        runner.invoke(app, ["prepare", SHA])
        result = runner.invoke(app, ["list-preparations"])
        assert result.exit_code == 0
        assert "a1b2c3d4" in result.output


class TestArtifacts:
    def test_list_and_fetch(self, home: Path, tmp_path: Path):
        result = runner.invoke(app, ["list-artifacts"])
        assert "No cached APKs" in result.output

        runner.invoke(app, ["prepare", SHA])
        runner.invoke(app, ["build", SHA])

        result = runner.invoke(app, ["list-artifacts"])
        assert result.exit_code == 0
        assert "Cached APKs" in result.output

        dest = tmp_path / "download"
        dest.mkdir()
        result = runner.invoke(app, ["fetch-artifact", "latest", str(dest)])
        assert result.exit_code == 0, result.output
        fetched = list(dest.glob("*.apk"))
        assert len(fetched) == 1

    def test_fetch_missing(self, home: Path, tmp_path: Path):
        result = runner.invoke(app, ["fetch-artifact", "nope.apk", str(tmp_path)])
        assert result.exit_code == 1
        assert "ArtifactNotFound" in result.output

    def test_fetch_outside_cache_refused(self, home: Path, tmp_path: Path):
        (home / "secret.txt").parent.mkdir(parents=True, exist_ok=True)
        (home / "secret.txt").write_text("not an apk")
        result = runner.invoke(app, ["fetch-artifact", "../secret.txt", str(tmp_path / "out.txt")])
        assert result.exit_code == 1
        assert "ArtifactNotFound" in result.output
        assert not (tmp_path / "out.txt").exists()

    def test_run_retention(self, home: Path):
        result = runner.invoke(app, ["run-retention", "--max-age-days", "1"])
        assert result.exit_code == 0
        assert "cleanup completed" in result.output

    def test_run_retention_bad_size(self, home: Path):
        result = runner.invoke(app, ["run-retention", "--max-size", "huge"])
        assert result.exit_code == 1


class TestOperational:
    def test_detect_change_without_network(self, home: Path):
        result = runner.invoke(app, ["detect-change"])
        assert result.exit_code == 1
        assert "ApiUnavailable" in result.output
        assert not (home / "config" / "last_commit_sha").exists()

    def test_health_check_passes_offline(self, home: Path):
        result = runner.invoke(app, ["health-check"])
        assert result.exit_code == 0, result.output
        assert "Health check passed" in result.output

    def test_health_check_bad_budget(self, home: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("APKGATE_MAX_CACHE_SIZE", "lots")
        result = runner.invoke(app, ["health-check"])
        assert result.exit_code == 1

    def test_config_masks_secrets(self, home: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("APKGATE_GITHUB_TOKEN", "ghp_supersecret")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "ghp_supersecret" not in result.output
        assert "****" in result.output

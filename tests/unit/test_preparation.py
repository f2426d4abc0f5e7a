"""Tests for PreparationOrchestrator — local staging and remote delegation."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from apkgate.core.preparation import PreparationOrchestrator
from apkgate.core.toolchain import ProjectStager, ToolchainProbe
from apkgate.errors import StagingFailed
from apkgate.models.outcomes import NotificationKind
from apkgate.models.preparation import PreparationStatus

SHA = "a1b2c3d4e5f60718293a4b5c6d7e8f9012345678"


class BrokenStager:
    def stage(self, workspace: Path) -> Path:
        raise StagingFailed("disk full")


@pytest.fixture
def make_orchestrator(settings, machine, monitor, dispatcher, make_delegate):
    def _factory(delegate=None, stager=None, s=None):
        s = s or settings
        return PreparationOrchestrator(
            s,
            machine,
            delegate or make_delegate(accept=False),
            monitor,
            dispatcher,
            probe=ToolchainProbe(s),
            stager=stager or ProjectStager(s),
        )

    return _factory


class TestLocalPreparation:
    def test_ready_without_sdk(self, make_orchestrator, machine, recorder, caplog):
        with caplog.at_level(logging.WARNING):
            record = make_orchestrator().prepare(SHA)

        assert record.status == PreparationStatus.READY_FOR_BUILD
        assert record.build_ready and record.dependencies_ready
        assert record.environment_validated is False
        assert record.manual_trigger_required is True
        assert machine.current(record.preparation_id).model_dump() == record.model_dump()
        assert any("Android SDK not found" in r.getMessage() for r in caplog.records)

        [note] = recorder.received
        assert note.kind == NotificationKind.PREPARATION_READY
        assert "MANUAL TRIGGER REQUIRED" in note.text
        assert f"apkgate build {SHA}" in note.text

    def test_passes_through_validating(self, make_orchestrator):
        record = make_orchestrator().prepare(SHA)
        path = [c.to_status for c in record.status_history]
        assert path == [PreparationStatus.VALIDATING, PreparationStatus.READY_FOR_BUILD]

    def test_stages_project_skeleton(self, make_orchestrator, machine, make_settings, tmp_path):
        scripts = tmp_path / "scripts"
        scripts.mkdir()
        (scripts / "boot.sh").write_text("#!/bin/sh\n")
        (scripts / "notes.txt").write_text("ignored")
        s = make_settings(scripts_dir=scripts)

        record = make_orchestrator(s=s).prepare(SHA)
        android = machine.store.workspace(record.preparation_id) / "android"
        assert (android / "app/src/main/java/com/spiralgang/filesystemds").is_dir()
        assert (android / "app/src/main/res/layout").is_dir()
        assert (android / "app/src/main/assets/scripts/boot.sh").is_file()
        assert not (android / "app/src/main/assets/scripts/notes.txt").exists()

    def test_environment_validated_with_sdk(self, make_orchestrator, make_settings, tmp_path):
        sdk = tmp_path / "sdk"
        sdk.mkdir()
        record = make_orchestrator(s=make_settings(android_home=sdk)).prepare(SHA)
        assert record.environment_validated is True
        assert record.is_ready

    def test_staging_failure(self, make_orchestrator, recorder):
        record = make_orchestrator(stager=BrokenStager()).prepare(SHA)
        assert record.status == PreparationStatus.PREPARATION_FAILED
        assert record.build_ready is False
        [note] = recorder.received
        assert note.kind == NotificationKind.PREPARATION_FAILED
        assert "disk full" in note.text

    def test_each_call_creates_new_record(self, make_orchestrator, machine):
        orch = make_orchestrator()
        first = orch.prepare(SHA)
        second = orch.prepare(SHA)
        assert first.preparation_id != second.preparation_id
        assert len(machine.store.list_records()) == 2


class TestRemotePreparation:
    def test_waits_for_remote_verdict(self, make_orchestrator, make_delegate, machine, clock):
        delegate = make_delegate(accept=True)
        holder: dict[str, str] = {}

        def remote_job(now: float) -> None:
            # The CI job publishes ready after the second poll
            if now >= 60 and "done" not in holder:
                prep_id = machine.store.list_records()[-1].preparation_id
                machine.transition(prep_id, PreparationStatus.READY_FOR_BUILD, build_ready=True)
                holder["done"] = prep_id

        clock.on_sleep = remote_job
        record = make_orchestrator(delegate=delegate).prepare(SHA)

        assert delegate.calls == [("prepare", "debug", True)]
        assert record.status == PreparationStatus.READY_FOR_BUILD
        assert record.delegated is True
        assert clock.sleeps == [30, 30]

    def test_remote_timeout_returns_stalled_record(self, make_orchestrator, make_delegate, clock):
        record = make_orchestrator(delegate=make_delegate(accept=True)).prepare(SHA)
        assert record.status == PreparationStatus.PREPARING
        assert record.delegated is True
        assert clock.t == pytest.approx(600)

    def test_declined_falls_back_to_local(self, make_orchestrator, make_delegate):
        delegate = make_delegate(accept=False)
        record = make_orchestrator(delegate=delegate).prepare(SHA)
        assert delegate.calls == [("prepare", "debug", True)]
        assert record.delegated is False
        assert record.is_ready

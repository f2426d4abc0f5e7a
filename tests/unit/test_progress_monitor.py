"""Tests for ProgressMonitor — bounded polling with an injected clock."""

from __future__ import annotations

import logging

import pytest

from apkgate.core.progress_monitor import ProgressMonitor


class TestAwaitTerminal:
    def test_returns_immediately_when_settled(self, monitor: ProgressMonitor, clock):
        assert monitor.await_terminal(lambda: True, timeout_seconds=60) is True
        assert clock.sleeps == []

    def test_polls_until_settled(self, monitor: ProgressMonitor, clock):
        answers = iter([False, False, True])
        assert monitor.await_terminal(lambda: next(answers), 600, poll_interval_seconds=30)
        assert clock.sleeps == [30, 30]

    def test_times_out(self, monitor: ProgressMonitor, clock):
        assert monitor.await_terminal(lambda: False, timeout_seconds=100, poll_interval_seconds=30) is False
        # Last sleep is clipped to the deadline
        assert clock.sleeps == [30, 30, 30, 10]
        assert clock.t == pytest.approx(100)

    def test_zero_timeout_checks_once(self, monitor: ProgressMonitor, clock):
        calls = []

        def check() -> bool:
            calls.append(1)
            return False

        assert monitor.await_terminal(check, timeout_seconds=0) is False
        assert len(calls) == 1
        assert clock.sleeps == []

    def test_heartbeat_logged(self, clock, caplog: pytest.LogCaptureFixture):
        monitor = ProgressMonitor(clock=clock.now, sleep=clock.sleep, heartbeat_seconds=60)
        with caplog.at_level(logging.INFO, logger="apkgate.core.progress_monitor"):
            monitor.await_terminal(lambda: False, 150, poll_interval_seconds=30, label="build x")
        beats = [r for r in caplog.records if "Still waiting for build x" in r.getMessage()]
        assert len(beats) == 2
        assert any("Timeout reached" in r.getMessage() for r in caplog.records)

"""Tests for notification routing — dispatcher fan-out and sink payloads."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
import requests

from apkgate.models.outcomes import Notification, NotificationKind
from apkgate.models.preparation import PreparationRecord, PreparationStatus
from apkgate.routing import build_dispatcher
from apkgate.routing.dispatcher import NotificationDispatcher
from apkgate.routing.formatting import build_notification
from apkgate.routing.sinks import BaseSink
from apkgate.routing.sinks.local import LogSink
from apkgate.routing.sinks.webhook import DiscordSink, SlackSink, WebhookSink

SHA = "a1b2c3d4e5f60718293a4b5c6d7e8f9012345678"


@pytest.fixture
def record() -> PreparationRecord:
    return PreparationRecord(
        preparation_id="prep-20250301-120000-a1b2c3d4",
        commit_sha=SHA,
        repository="spiralgang/FileSystemds",
        branch="main",
        status=PreparationStatus.READY_FOR_BUILD,
    )


@pytest.fixture
def note(record) -> Notification:
    return Notification(
        kind=NotificationKind.BUILD_SUCCESS,
        preparation_id=record.preparation_id,
        commit_sha=SHA,
        text="hello",
    )


class TestDispatcher:
    def test_fans_out_to_all(self, make_sink, note):
        a, b = make_sink("a"), make_sink("b")
        d = NotificationDispatcher()
        d.register_sink(a)
        d.register_sink(b)
        assert d.dispatch(note) == ["a", "b"]
        assert a.received == [note] and b.received == [note]

    def test_failing_sink_does_not_block_others(self, make_sink, note, caplog):
        broken, ok = make_sink("broken", fail=True), make_sink("ok")
        d = NotificationDispatcher()
        d.register_sink(broken)
        d.register_sink(ok)
        with caplog.at_level(logging.ERROR):
            assert d.dispatch(note) == ["ok"]
        assert ok.received == [note]
        assert any("broken is down" in r.getMessage() for r in caplog.records)

    def test_duplicate_registration_ignored(self, make_sink):
        sink = make_sink()
        d = NotificationDispatcher()
        d.register_sink(sink)
        d.register_sink(sink)
        assert len(d.registered_sinks) == 1

    def test_disabled_sends_nothing(self, make_sink, note):
        sink = make_sink()
        d = NotificationDispatcher(enabled=False)
        d.register_sink(sink)
        assert d.dispatch(note) == []
        assert sink.received == []

    def test_no_sinks(self, note):
        assert NotificationDispatcher().dispatch(note) == []


class TestFormatting:
    def test_ready_text_names_manual_trigger(self, record, settings):
        n = build_notification(NotificationKind.PREPARATION_READY, record, settings)
        assert "READY" in n.text
        assert "MANUAL TRIGGER REQUIRED" in n.text
        assert f"apkgate build {SHA}" in n.text
        assert n.preparation_id == record.preparation_id

    def test_failure_text_carries_detail(self, record, settings):
        n = build_notification(NotificationKind.BUILD_FAILED, record, settings, "gradle exited 1")
        assert "Status: failed" in n.text
        assert "Repository: spiralgang/FileSystemds" in n.text
        assert n.text.endswith("gradle exited 1")


class TestSinks:
    def test_log_sink_logs_without_retaining(self, note, caplog):
        sink = LogSink()
        before = dict(vars(sink))
        with caplog.at_level(logging.INFO, logger="apkgate.routing.sinks.local"):
            for _ in range(3):
                sink.accept(note)
        assert vars(sink) == before
        assert [r.getMessage() for r in caplog.records].count("BUILD NOTIFICATION: hello") == 3
        assert isinstance(sink, BaseSink)

    def test_desktop_alert_when_available(self, note):
        runner = MagicMock()
        LogSink(desktop=True, title="T", runner=runner, which=lambda _: "/usr/bin/notify-send").accept(note)
        assert runner.call_args.args[0] == ["notify-send", "T", "hello"]

    def test_desktop_alert_skipped_without_binary(self, note):
        runner = MagicMock()
        LogSink(desktop=True, runner=runner, which=lambda _: None).accept(note)
        runner.assert_not_called()

    @pytest.mark.parametrize(
        "cls,key", [(WebhookSink, "text"), (SlackSink, "text"), (DiscordSink, "content")]
    )
    def test_webhook_payloads(self, cls, key, note):
        session = MagicMock()
        cls("https://hooks.example/x", session=session, timeout=5).accept(note)
        session.post.assert_called_once_with(
            "https://hooks.example/x", json={key: "hello"}, timeout=5
        )

    def test_webhook_http_error_raises(self, note):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        with pytest.raises(requests.HTTPError):
            SlackSink("https://hooks.example/x", session=session).accept(note)


class TestBuildDispatcher:
    def test_local_only_by_default(self, settings):
        names = [s.sink_name for s in build_dispatcher(settings).registered_sinks]
        assert names == ["local"]

    def test_configured_webhooks(self, make_settings):
        s = make_settings(
            webhook_url="https://a", slack_webhook="https://b", discord_webhook="https://c"
        )
        names = [sink.sink_name for sink in build_dispatcher(s).registered_sinks]
        assert names == ["local", "webhook", "slack", "discord"]

    def test_disabled_flag(self, make_settings):
        assert build_dispatcher(make_settings(notification_enabled=False)).enabled is False

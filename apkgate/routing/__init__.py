"""Notification routing — every phase transition fans out to all sinks.

Sinks are pluggable: the local log (plus optional desktop alert), a generic
webhook, Slack and Discord. A failing sink never blocks the others and never
fails the build.
"""

from __future__ import annotations

from apkgate.config import AgentSettings
from apkgate.routing.dispatcher import NotificationDispatcher
from apkgate.routing.sinks.local import LogSink
from apkgate.routing.sinks.webhook import DiscordSink, SlackSink, WebhookSink


def build_dispatcher(settings: AgentSettings) -> NotificationDispatcher:
    """Dispatcher with the local sink plus one sink per configured webhook."""
    dispatcher = NotificationDispatcher(enabled=settings.notification_enabled)
    dispatcher.register_sink(
        LogSink(desktop=settings.desktop_notifications, title=f"{settings.app_name} APK Build")
    )
    if settings.webhook_url:
        dispatcher.register_sink(WebhookSink(settings.webhook_url, timeout=settings.http_timeout_seconds))
    if settings.slack_webhook:
        dispatcher.register_sink(SlackSink(settings.slack_webhook, timeout=settings.http_timeout_seconds))
    if settings.discord_webhook:
        dispatcher.register_sink(DiscordSink(settings.discord_webhook, timeout=settings.http_timeout_seconds))
    return dispatcher


__all__ = [
    "NotificationDispatcher",
    "LogSink",
    "WebhookSink",
    "SlackSink",
    "DiscordSink",
    "build_dispatcher",
]

"""Builds the plain-text status messages sent at phase transitions.

Sinks receive finished text; they only decide how to deliver it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from apkgate.config import AgentSettings
from apkgate.models.outcomes import Notification, NotificationKind
from apkgate.models.preparation import PreparationRecord

_HEADLINES = {
    NotificationKind.PREPARATION_READY: "APK build environment prepared and ready!",
    NotificationKind.PREPARATION_FAILED: "APK build environment preparation failed!",
    NotificationKind.BUILD_SUCCESS: "APK build completed successfully!",
    NotificationKind.BUILD_FAILED: "APK build failed!",
}

_STATUS_WORDS = {
    NotificationKind.PREPARATION_READY: "ready",
    NotificationKind.PREPARATION_FAILED: "failed",
    NotificationKind.BUILD_SUCCESS: "success",
    NotificationKind.BUILD_FAILED: "failed",
}


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_ready_text(record: PreparationRecord, settings: AgentSettings) -> str:
    """The prominent "ready, trigger me" message."""
    return "\n".join([
        f"{settings.app_name} APK Build Environment READY!",
        "",
        f"Preparation ID: {record.preparation_id}",
        "Status: Ready for Build",
        f"Commit: {record.commit_sha}",
        f"Build Type: {record.build_type}",
        f"Prepared: {_now()}",
        "",
        "MANUAL TRIGGER REQUIRED TO BUILD APK",
        "",
        "To build the APK:",
        f"1. Run: apkgate build {record.commit_sha}",
        "2. Or run the GitHub Actions workflow with action='build'",
    ])


def format_status_text(
    kind: NotificationKind,
    record: PreparationRecord,
    settings: AgentSettings,
    detail: str | None = None,
) -> str:
    phase = "Preparation" if kind in (
        NotificationKind.PREPARATION_READY, NotificationKind.PREPARATION_FAILED
    ) else "Build"
    lines = [
        f"{settings.app_name} APK {phase}",
        f"Preparation ID: {record.preparation_id}",
        f"Status: {_STATUS_WORDS[kind]}",
        f"Repository: {record.repository}",
        f"Branch: {record.branch}",
        f"Build Type: {record.build_type}",
        f"Time: {_now()}",
        "",
        _HEADLINES[kind],
    ]
    if detail:
        lines.append(detail)
    return "\n".join(lines)


def build_notification(
    kind: NotificationKind,
    record: PreparationRecord,
    settings: AgentSettings,
    detail: str | None = None,
) -> Notification:
    if kind == NotificationKind.PREPARATION_READY:
        text = format_ready_text(record, settings)
    else:
        text = format_status_text(kind, record, settings, detail)
    return Notification(
        kind=kind,
        preparation_id=record.preparation_id,
        commit_sha=record.commit_sha,
        text=text,
    )

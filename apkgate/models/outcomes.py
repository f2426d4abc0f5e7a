"""Build outcomes and notification payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from apkgate.models.artifacts import CachedArtifact
from apkgate.models.preparation import PreparationStatus


class BuildOutcome(BaseModel):
    """What a manual build trigger produced."""

    model_config = ConfigDict(frozen=True)

    preparation_id: str
    status: PreparationStatus
    delegated: bool = False
    simulated: bool = False
    timed_out: bool = False
    artifact: CachedArtifact | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == PreparationStatus.BUILD_COMPLETE


class NotificationKind(str, Enum):
    """Phase transitions that produce a notification."""

    PREPARATION_READY = "preparation-ready"
    PREPARATION_FAILED = "preparation-failed"
    BUILD_SUCCESS = "build-success"
    BUILD_FAILED = "build-failed"


class Notification(BaseModel):
    """A fully formed status message handed to the dispatcher."""

    model_config = ConfigDict(frozen=True)

    kind: NotificationKind
    preparation_id: str
    commit_sha: str
    text: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

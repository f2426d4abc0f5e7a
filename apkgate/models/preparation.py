"""Preparation status model — closed enum with a monotonic transition table."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PreparationStatus(str, Enum):
    """Lifecycle of one preparation record, from staging to build result."""

    PREPARING = "preparing"
    VALIDATING = "validating"
    READY_FOR_BUILD = "ready-for-build"
    PREPARATION_FAILED = "preparation-failed"
    BUILDING = "building"
    BUILD_COMPLETE = "build-complete"
    BUILD_FAILED = "build-failed"


# Enforced by PreparationStateMachine. A remote preparation job may publish
# its verdict straight from PREPARING, so that edge is legal too.
VALID_TRANSITIONS: dict[PreparationStatus, set[PreparationStatus]] = {
    PreparationStatus.PREPARING: {
        PreparationStatus.VALIDATING,
        PreparationStatus.READY_FOR_BUILD,
        PreparationStatus.PREPARATION_FAILED,
    },
    PreparationStatus.VALIDATING: {
        PreparationStatus.READY_FOR_BUILD,
        PreparationStatus.PREPARATION_FAILED,
    },
    PreparationStatus.READY_FOR_BUILD: {PreparationStatus.BUILDING},
    PreparationStatus.BUILDING: {
        PreparationStatus.BUILD_COMPLETE,
        PreparationStatus.BUILD_FAILED,
    },
    PreparationStatus.PREPARATION_FAILED: set(),  # terminal
    PreparationStatus.BUILD_COMPLETE: set(),  # terminal
    PreparationStatus.BUILD_FAILED: set(),  # terminal
}

# Any of these means the preparation phase is over.
PREPARATION_SETTLED: frozenset[PreparationStatus] = frozenset({
    PreparationStatus.READY_FOR_BUILD,
    PreparationStatus.PREPARATION_FAILED,
    PreparationStatus.BUILDING,
    PreparationStatus.BUILD_COMPLETE,
    PreparationStatus.BUILD_FAILED,
})

BUILD_SETTLED: frozenset[PreparationStatus] = frozenset({
    PreparationStatus.BUILD_COMPLETE,
    PreparationStatus.BUILD_FAILED,
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusChange(BaseModel):
    """One recorded status transition."""

    model_config = ConfigDict(frozen=True)

    from_status: PreparationStatus
    to_status: PreparationStatus
    at: datetime = Field(default_factory=_utcnow)


class PreparationRecord(BaseModel):
    """One attempt to ready a build environment for a specific commit.

    Serialized as ``preparation_manifest.json`` inside the preparation's
    workspace directory. The model is frozen; the state machine produces an
    updated copy and persists it, so the file on disk is the record.
    """

    model_config = ConfigDict(frozen=True)

    preparation_id: str
    commit_sha: str
    build_type: str = "debug"
    repository: str
    branch: str
    status: PreparationStatus = PreparationStatus.PREPARING
    build_ready: bool = False
    manual_trigger_required: bool = True
    environment_validated: bool = False
    dependencies_ready: bool = False
    delegated: bool = False
    artifact_path: str | None = None
    prepared_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    status_history: list[StatusChange] = []

    @property
    def short_commit(self) -> str:
        return self.commit_sha[:8]

    @property
    def is_ready(self) -> bool:
        return self.status == PreparationStatus.READY_FOR_BUILD

"""apkgate data models — all Pydantic v2, all frozen (immutable)."""

from apkgate.models.artifacts import CachedArtifact
from apkgate.models.outcomes import BuildOutcome, Notification, NotificationKind
from apkgate.models.preparation import (
    BUILD_SETTLED,
    PREPARATION_SETTLED,
    VALID_TRANSITIONS,
    PreparationRecord,
    PreparationStatus,
    StatusChange,
)
from apkgate.models.repository import CommitLookup, DetectionResult, LookupState

__all__ = [
    # preparation
    "PreparationStatus",
    "PreparationRecord",
    "StatusChange",
    "VALID_TRANSITIONS",
    "PREPARATION_SETTLED",
    "BUILD_SETTLED",
    # artifacts
    "CachedArtifact",
    # repository
    "LookupState",
    "CommitLookup",
    "DetectionResult",
    # outcomes
    "BuildOutcome",
    "NotificationKind",
    "Notification",
]

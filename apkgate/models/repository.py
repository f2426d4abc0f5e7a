"""Repository tracking models — commit lookups and detection results."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class LookupState(str, Enum):
    """Outcome of asking the hosting service for a branch head."""

    OK = "ok"
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not-found"


class CommitLookup(BaseModel):
    """Result of a branch-head lookup. Never raised, always returned."""

    model_config = ConfigDict(frozen=True)

    state: LookupState
    sha: str | None = None
    detail: str = ""


class DetectionResult(BaseModel):
    """What one detection pass observed.

    ``baseline`` is set on the very first pass, when there was no stored
    pointer to compare against; it is never reported as a change.
    """

    model_config = ConfigDict(frozen=True)

    changed: bool
    commit: str
    previous: str | None = None
    baseline: bool = False

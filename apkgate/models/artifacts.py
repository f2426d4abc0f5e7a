"""Cached artifact models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class CachedArtifact(BaseModel):
    """A successfully built package held in the artifact cache.

    The metadata lives next to the package as ``<name>.meta``.
    """

    model_config = ConfigDict(frozen=True)

    preparation_id: str
    name: str
    path: str
    size_bytes: int
    checksum: str  # "sha256:<hex>"
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def age_days(self, now: datetime | None = None) -> float:
        """Age of the artifact in fractional days."""
        now = now or datetime.now(timezone.utc)
        return (now - self.created_at).total_seconds() / 86400.0

"""Preparation state machine — monotonic, manifest-backed transitions.

Enforces:
- Valid status transitions only (VALID_TRANSITIONS table)
- No record ever returns to an earlier phase
- Every transition is appended to the record's status history and persisted
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apkgate.core.manifest_store import ManifestStore
from apkgate.errors import InvalidTransitionError
from apkgate.models.preparation import (
    VALID_TRANSITIONS,
    PreparationRecord,
    PreparationStatus,
    StatusChange,
)

logger = logging.getLogger(__name__)


class PreparationStateMachine:
    """Moves preparation records through their lifecycle.

    The persisted manifest is authoritative: every transition re-reads the
    record first, so progress published by a remote job is never overwritten
    with a stale in-memory copy.

    Parameters
    ----------
    store:
        The manifest store records are read from and written to.
    """

    def __init__(self, store: ManifestStore) -> None:
        self._store = store

    @property
    def store(self) -> ManifestStore:
        return self._store

    def create(self, record: PreparationRecord) -> PreparationRecord:
        """Persist a brand-new record. It must start in ``preparing``."""
        if record.status != PreparationStatus.PREPARING:
            raise InvalidTransitionError(
                f"New preparation {record.preparation_id} must start as "
                f"{PreparationStatus.PREPARING.value}, got {record.status.value}"
            )
        return self._store.save(record)

    def current(self, preparation_id: str) -> PreparationRecord:
        return self._store.load(preparation_id)

    def status_of(self, preparation_id: str) -> PreparationStatus:
        return self._store.load(preparation_id).status

    def can_transition(
        self, current: PreparationStatus, target: PreparationStatus
    ) -> bool:
        return target in VALID_TRANSITIONS.get(current, set())

    def transition(
        self,
        preparation_id: str,
        target: PreparationStatus,
        **updates: object,
    ) -> PreparationRecord:
        """Advance a record to *target*, applying field *updates* with it.

        Raises ``InvalidTransitionError`` (and writes nothing) if the move is
        not in VALID_TRANSITIONS.
        """
        record = self._store.load(preparation_id)
        if not self.can_transition(record.status, target):
            allowed = sorted(s.value for s in VALID_TRANSITIONS.get(record.status, set()))
            raise InvalidTransitionError(
                f"Cannot transition {preparation_id} from {record.status.value} "
                f"to {target.value}. Allowed: {allowed}"
            )

        now = datetime.now(timezone.utc)
        change = StatusChange(from_status=record.status, to_status=target, at=now)
        updated = record.model_copy(
            update={
                **updates,
                "status": target,
                "updated_at": now,
                "status_history": [*record.status_history, change],
            }
        )
        self._store.save(updated)
        logger.info(
            "Preparation %s: %s -> %s",
            preparation_id,
            record.status.value,
            target.value,
        )
        return updated

    def update_flags(self, preparation_id: str, **updates: object) -> PreparationRecord:
        """Change non-status fields without moving the record."""
        if "status" in updates:
            raise InvalidTransitionError("Use transition() to change status")
        record = self._store.load(preparation_id)
        updated = record.model_copy(
            update={**updates, "updated_at": datetime.now(timezone.utc)}
        )
        return self._store.save(updated)

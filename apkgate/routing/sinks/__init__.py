"""Sink protocol for notification delivery.

All sinks implement ``BaseSink``: a ``sink_name`` property and an
``accept(notification)`` method. The dispatcher calls ``accept`` on every
registered sink for every notification.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from apkgate.models.outcomes import Notification


@runtime_checkable
class BaseSink(Protocol):
    """Protocol that every notification sink must implement."""

    @property
    def sink_name(self) -> str:
        """Return the unique name of this sink."""
        ...

    def accept(self, notification: Notification) -> None:
        """Deliver the notification. May raise; the dispatcher logs and moves on."""
        ...

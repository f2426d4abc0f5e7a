"""NotificationDispatcher — fans status messages out to every sink.

Delivery is best effort. A failing sink is logged as ``NotificationFailed``
and the remaining sinks still receive the message; nothing here ever raises
back into the build pipeline.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apkgate.config import AgentSettings
from apkgate.errors import NotificationFailed
from apkgate.models.outcomes import Notification, NotificationKind
from apkgate.models.preparation import PreparationRecord
from apkgate.routing.formatting import build_notification

if TYPE_CHECKING:
    from apkgate.routing.sinks import BaseSink

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Routes notifications to ALL registered sinks.

    Usage
    -----
    >>> dispatcher = NotificationDispatcher()
    >>> dispatcher.register_sink(LogSink())
    >>> dispatcher.dispatch(notification)
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._sinks: list[BaseSink] = []

    # ------------------------------------------------------------------
    # Sink management
    # ------------------------------------------------------------------

    def register_sink(self, sink: BaseSink) -> None:
        """Register a sink. Registering the same instance twice is a no-op."""
        if sink not in self._sinks:
            self._sinks.append(sink)
            logger.debug("Registered sink: %s", sink.sink_name)

    @property
    def registered_sinks(self) -> list[BaseSink]:
        return list(self._sinks)

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, notification: Notification) -> list[str]:
        """Send *notification* to every sink.

        Returns the names of the sinks that accepted it.
        """
        if not self._enabled:
            return []
        if not self._sinks:
            logger.warning(
                "No sinks registered — notification for %s dropped",
                notification.preparation_id,
            )
            return []

        logger.info(
            "Sending %s notification: %s", notification.kind.value, notification.preparation_id
        )
        succeeded: list[str] = []
        for sink in self._sinks:
            try:
                sink.accept(notification)
                succeeded.append(sink.sink_name)
            except Exception as exc:  # noqa: BLE001
                failure = NotificationFailed(f"{sink.sink_name}: {exc}")
                logger.error("Notification sink failed: %s", failure)

        if len(succeeded) < len(self._sinks):
            logger.warning(
                "Notification %s: %d/%d sinks succeeded",
                notification.kind.value, len(succeeded), len(self._sinks),
            )
        return succeeded

    def notify(
        self,
        kind: NotificationKind,
        record: PreparationRecord,
        settings: AgentSettings,
        detail: str | None = None,
    ) -> list[str]:
        """Format and dispatch a phase-transition message for *record*."""
        return self.dispatch(build_notification(kind, record, settings, detail))

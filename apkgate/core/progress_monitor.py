"""Poll-until-settled loop with a bounded timeout.

The monitor knows nothing about what it waits for beyond a predicate, so the
same instance serves preparation waits and build waits. Waiting is a
blocking sleep between polls; the only way out early is the predicate.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30
HEARTBEAT_SECONDS = 300


class ProgressMonitor:
    """Blocking poll loop.

    Parameters
    ----------
    clock:
        Monotonic clock returning seconds. Defaults to ``time.monotonic``.
    sleep:
        Sleep function taking seconds. Defaults to ``time.sleep``.
    heartbeat_seconds:
        How often to log that the wait is still in progress.
    """

    def __init__(
        self,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
        heartbeat_seconds: float = HEARTBEAT_SECONDS,
    ) -> None:
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._heartbeat = heartbeat_seconds

    def await_terminal(
        self,
        check_fn: Callable[[], bool],
        timeout_seconds: float,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL,
        *,
        label: str = "job",
    ) -> bool:
        """Poll *check_fn* until it returns True or *timeout_seconds* pass.

        Returns False on timeout. The caller should read that as "stalled":
        the job may still finish later and be picked up by a later run.
        """
        start = self._clock()
        deadline = start + timeout_seconds
        next_heartbeat = start + self._heartbeat
        interval = max(poll_interval_seconds, 0.0)

        logger.info(
            "Waiting for %s (timeout %ss, poll every %ss)",
            label, int(timeout_seconds), int(interval),
        )

        while True:
            if check_fn():
                logger.info("%s reached a settled state", label)
                return True

            now = self._clock()
            if now >= deadline:
                break

            self._sleep(min(interval, deadline - now))

            now = self._clock()
            if now >= next_heartbeat:
                logger.info(
                    "Still waiting for %s... (%ds/%ds)",
                    label, int(now - start), int(timeout_seconds),
                )
                next_heartbeat += self._heartbeat

        logger.error("Timeout reached waiting for %s", label)
        return False

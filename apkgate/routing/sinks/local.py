"""Local sink — logs every notification and optionally pops a desktop alert."""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable

from apkgate.models.outcomes import Notification

logger = logging.getLogger(__name__)


class LogSink:
    """Writes the notification text to the agent log.

    Parameters
    ----------
    desktop:
        Also call ``notify-send`` when it is on PATH.
    title:
        Desktop notification title.
    """

    def __init__(
        self,
        desktop: bool = False,
        title: str = "APK Build",
        runner: Callable[..., subprocess.CompletedProcess] | None = None,
        which: Callable[[str], str | None] | None = None,
    ) -> None:
        self._desktop = desktop
        self._title = title
        self._run = runner or subprocess.run
        self._which = which or shutil.which

    @property
    def sink_name(self) -> str:
        return "local"

    def accept(self, notification: Notification) -> None:
        logger.info("BUILD NOTIFICATION: %s", notification.text)
        if self._desktop and self._which("notify-send"):
            try:
                self._run(
                    ["notify-send", self._title, notification.text],
                    capture_output=True,
                    timeout=10,
                )
            except (subprocess.SubprocessError, OSError) as exc:
                logger.debug("notify-send failed: %s", exc)

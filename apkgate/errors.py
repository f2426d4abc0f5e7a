"""Error taxonomy for the preparation and build agent.

Every error raised by the core derives from ``AgentError`` so the command
surface can turn any of them into a non-zero exit. Whether an error is fatal
depends on where it is caught:

- ``ToolchainMissing`` and ``NotificationFailed`` are logged and never end
  an operation.
- ``StagingFailed`` and ``BuildFailed`` end the current record in a failed
  status.
- ``CacheWriteFailed`` is logged; the build it belongs to stays complete.
"""

from __future__ import annotations


class AgentError(RuntimeError):
    """Base class for all agent errors."""


class ApiUnavailable(AgentError):
    """The version-control hosting service could not be reached."""


class CommitNotFound(AgentError):
    """The tracked branch did not resolve to a commit."""


class PreparationNotFound(AgentError):
    """No preparation record matches the requested commit or id."""


class PreparationNotReady(AgentError):
    """The preparation record is not in ``ready-for-build``.

    Attributes
    ----------
    preparation_id:
        The record that was refused.
    status:
        The status it was found in.
    """

    def __init__(self, preparation_id: str, status: str) -> None:
        self.preparation_id = preparation_id
        self.status = status
        super().__init__(
            f"Preparation {preparation_id} is not ready for build "
            f"(current status: {status})"
        )


class ToolchainMissing(AgentError):
    """No local Android SDK was found."""


class StagingFailed(AgentError):
    """The project skeleton could not be staged into the workspace."""


class BuildFailed(AgentError):
    """The local build did not produce a package."""


class CacheWriteFailed(AgentError):
    """An artifact or its metadata could not be written to, or copied out of, the cache."""


class ArtifactNotFound(AgentError):
    """The requested artifact is not in the cache."""


class NotificationFailed(AgentError):
    """A notification sink failed to deliver a message."""


class ManifestError(AgentError):
    """A preparation manifest is missing fields or holds invalid values."""


class InvalidTransitionError(AgentError):
    """A status change would move a record backwards or skip a phase."""

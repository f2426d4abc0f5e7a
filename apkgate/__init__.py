"""apkgate: preparation-first, manually gated Android APK build agent.

Keeps a build environment warm for every new commit on the tracked branch
and only builds when an operator asks for it:
  - change detection against a persisted last-seen commit
  - preparation delegated to GitHub Actions, with local staging as fallback
  - a build gate that refuses anything not ``ready-for-build``
  - an APK cache with checksums, a ``latest`` alias and retention
"""

__version__ = "0.2.0"
__description__ = "Preparation-first, manually gated Android APK build agent"

from apkgate.config import AgentSettings
from apkgate.core.agent import BuildAgent

__all__ = ["AgentSettings", "BuildAgent", "__version__"]

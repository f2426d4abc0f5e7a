"""Agent configuration — env-driven, constructed once and passed down.

Centralized settings using pydantic-settings. Values come from keyword
arguments, APKGATE_* environment variables, or a .env file in the working
directory. The CLI builds a single ``AgentSettings`` and hands it to every
component; nothing below the CLI reads the process environment itself.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentSettings(BaseSettings):
    """Settings for the APK preparation and build agent.

    Examples
    --------
    Override via environment::

        export APKGATE_GITHUB_REPO=acme/mobile
        export APKGATE_BUILD_TYPE=release
        export APKGATE_HOME_DIR=/srv/platform_ops

    Or via .env file::

        APKGATE_REMOTE_CI_BACKEND=api
        APKGATE_GITHUB_TOKEN=ghp_...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APKGATE_",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Tracked repository
    github_repo: str = "spiralgang/FileSystemds"
    github_branch: str = "main"
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    http_timeout_seconds: float = 15.0

    # Build behaviour
    build_type: str = "debug"
    auto_prepare_on_push: bool = True
    build_timeout_minutes: int = 45
    poll_interval_seconds: int = 30
    monitor_interval_seconds: int = 300

    # Remote CI delegation: "gh", "api" or "none"
    remote_ci_backend: str = "gh"
    workflow_file: str = "android-apk-build.yml"

    # Toolchain
    android_home: Path | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "android_home",
            "APKGATE_ANDROID_HOME",
            "ANDROID_HOME",
            "ANDROID_SDK_ROOT",
        ),
    )
    android_api_level: int = 34
    java_version: int = 17
    gradle_version: str = "8.4"
    app_name: str = "filesystemds-mobile"
    android_package: str = "com.spiralgang.filesystemds"
    scripts_dir: Path | None = None

    # Cache
    retention_days: int = 30
    max_cache_size: str = "1G"

    # Notifications
    notification_enabled: bool = True
    desktop_notifications: bool = True
    webhook_url: str = ""
    slack_webhook: str = ""
    discord_webhook: str = ""

    # Storage root
    home_dir: Path = Path("~/platform_ops")
    log_level: str = "INFO"

    @property
    def root(self) -> Path:
        return self.home_dir.expanduser()

    @property
    def log_dir(self) -> Path:
        return self.root / "logs"

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def cache_dir(self) -> Path:
        return self.root / "apk_cache"

    @property
    def workspace_dir(self) -> Path:
        return self.root / "android_builds"

    @property
    def log_file(self) -> Path:
        return self.log_dir / "apkgate.log"

    @property
    def build_timeout_seconds(self) -> int:
        """Upper bound for a single preparation or build wait."""
        return self.build_timeout_minutes * 60

    def ensure_directories(self) -> None:
        """Create the log, config, cache and workspace directories."""
        for path in (self.log_dir, self.config_dir, self.cache_dir, self.workspace_dir):
            path.mkdir(parents=True, exist_ok=True)

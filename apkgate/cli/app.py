"""Main Typer application — imports and registers all CLI commands.

Entry point: ``apkgate`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from apkgate.cli.commands.artifacts import (
    fetch_artifact_cmd,
    list_artifacts_cmd,
    retention_cmd,
)
from apkgate.cli.commands.build import build_cmd
from apkgate.cli.commands.detect import detect_cmd, monitor_cmd
from apkgate.cli.commands.health import config_cmd, health_cmd
from apkgate.cli.commands.prepare import list_preparations_cmd, prepare_cmd

app = typer.Typer(
    name="apkgate",
    help="APK build agent: automatic preparation, manually triggered builds.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def root(
    ctx: typer.Context,
    log_level: str = typer.Option(
        None, "--log-level", help="Override the configured log level."
    ),
) -> None:
    ctx.obj = {"log_level": log_level}


# Register subcommands
app.command(name="detect-change", help="Check for repository changes once.")(detect_cmd)
app.command(name="start-monitoring", help="Check for changes continuously.")(monitor_cmd)
app.command(name="prepare", help="Prepare the build environment for a commit.")(prepare_cmd)
app.command(name="build", help="Trigger a MANUAL build (requires preparation).")(build_cmd)
app.command(name="list-preparations", help="List preparation records.")(list_preparations_cmd)
app.command(name="list-artifacts", help="List cached APKs.")(list_artifacts_cmd)
app.command(name="fetch-artifact", help="Copy a cached APK out of the cache.")(fetch_artifact_cmd)
app.command(name="run-retention", help="Clean up old cached APKs.")(retention_cmd)
app.command(name="health-check", help="Perform a system health check.")(health_cmd)
app.command(name="config", help="Show the current configuration.")(config_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

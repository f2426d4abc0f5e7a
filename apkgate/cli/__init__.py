"""apkgate CLI — Typer-based command-line interface.

Provides the ``apkgate`` command with subcommands for change detection,
preparation, manual builds, the artifact cache and health checks.

All output uses Rich for formatted terminal display.
"""

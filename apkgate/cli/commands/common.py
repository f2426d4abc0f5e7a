"""Shared helpers for CLI commands: settings, logging, agent construction."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from apkgate.config import AgentSettings
from apkgate.core.agent import BuildAgent
from apkgate.errors import AgentError

console = Console()

_HANDLER_TAG = "_apkgate_handler"
_FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(settings: AgentSettings, level: str | None = None) -> None:
    """Console logging through Rich plus a plain log file under ``log_dir``.

    Calling it again replaces the handlers it installed earlier.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    root.setLevel((level or settings.log_level).upper())

    rich_handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    setattr(rich_handler, _HANDLER_TAG, True)
    root.addHandler(rich_handler)

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, _DATE_FORMAT))
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)


def load_agent(ctx: typer.Context) -> BuildAgent:
    """Build settings once, configure logging and return the agent."""
    options = ctx.find_root().obj or {}
    settings = AgentSettings()
    configure_logging(settings, options.get("log_level"))
    logging.getLogger(__name__).debug("Configuration loaded for %s", settings.github_repo)
    return BuildAgent(settings)


def fail(exc: AgentError) -> typer.Exit:
    """Print an agent error and return the exit to raise."""
    console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
    return typer.Exit(code=1)

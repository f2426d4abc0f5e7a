"""Artifact cache commands: list, fetch and retention."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from apkgate.cli.commands.common import console, fail, load_agent
from apkgate.errors import AgentError


def _human(size: int) -> str:
    value = float(size)
    for unit in ("B", "K", "M", "G"):
        if value < 1024 or unit == "G":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{size}B"


def list_artifacts_cmd(ctx: typer.Context) -> None:
    """List cached APKs, oldest first, marking the latest."""
    agent = load_agent(ctx)
    artifacts = agent.list_artifacts()
    if not artifacts:
        console.print("[dim]No cached APKs.[/dim]")
        return

    latest = agent.cache.latest_name()
    table = Table(title="Cached APKs")
    table.add_column("Name", style="cyan")
    table.add_column("Preparation")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    table.add_column("Checksum")
    table.add_column("Latest", justify="center")
    for a in artifacts:
        table.add_row(
            a.name,
            a.preparation_id,
            _human(a.size_bytes),
            a.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            a.checksum[:19],
            "[green]*[/green]" if a.name == latest else "",
        )
    console.print(table)


def fetch_artifact_cmd(
    ctx: typer.Context,
    name: str = typer.Argument("latest", help="Cached APK name, or 'latest'."),
    destination: Path = typer.Argument(
        Path("."), help="Directory or file path to copy the APK to."
    ),
) -> None:
    """Copy a cached APK out of the cache."""
    agent = load_agent(ctx)
    try:
        target = agent.fetch_artifact(name, destination)
    except AgentError as exc:
        raise fail(exc)
    console.print(f"[green]APK copied to:[/green] {target}")


def retention_cmd(
    ctx: typer.Context,
    max_age_days: float = typer.Option(
        None, "--max-age-days", help="Evict APKs older than this (default: retention_days)."
    ),
    max_size: str = typer.Option(
        None, "--max-size", help="Cache size budget such as 1G (default: max_cache_size)."
    ),
) -> None:
    """Apply the cache retention policy now."""
    agent = load_agent(ctx)
    try:
        evicted = agent.run_retention(max_age_days, max_size)
    except ValueError as exc:
        console.print(f"[bold red]Invalid size:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except AgentError as exc:
        raise fail(exc)
    if evicted:
        for a in evicted:
            console.print(f"[yellow]Evicted[/yellow] {a.name}")
    console.print(
        f"[green]APK cache cleanup completed[/green] "
        f"({len(evicted)} evicted, {_human(agent.cache.total_size())} in cache)"
    )

"""``apkgate detect-change`` and ``apkgate start-monitoring``.

A detection pass compares the tracked branch head with the last-seen
pointer and, when ``auto_prepare_on_push`` is on, prepares the new commit.
"""

from __future__ import annotations

import typer

from apkgate.cli.commands.common import console, fail, load_agent
from apkgate.errors import AgentError


def detect_cmd(ctx: typer.Context) -> None:
    """Check the repository for a new commit once."""
    agent = load_agent(ctx)
    try:
        result, record = agent.detect_change()
    except AgentError as exc:
        raise fail(exc)

    if result.baseline:
        console.print(f"[cyan]Initial commit recorded:[/cyan] {result.commit}")
        console.print("[dim]No action taken on the first check.[/dim]")
    elif result.changed:
        console.print(f"[bold green]New commit detected:[/bold green] {result.commit}")
        if record is not None:
            console.print(
                f"Preparation [bold]{record.preparation_id}[/bold] is {record.status.value}"
            )
    else:
        console.print(f"[dim]No new commits since last check ({result.commit[:8]}).[/dim]")


def monitor_cmd(
    ctx: typer.Context,
    interval: int = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between checks (default: monitor_interval_seconds).",
    ),
    max_cycles: int = typer.Option(
        None,
        "--max-cycles",
        help="Stop after this many checks instead of running forever.",
    ),
) -> None:
    """Check the repository continuously, preparing on every new commit."""
    agent = load_agent(ctx)
    changes = agent.start_monitoring(interval, max_cycles=max_cycles)
    console.print(f"[dim]Monitoring stopped after detecting {changes} change(s).[/dim]")

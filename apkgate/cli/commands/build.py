"""``apkgate build [COMMIT]`` — the manual build trigger.

Refuses to build unless the preparation is ``ready-for-build``.
"""

from __future__ import annotations

import typer
from rich.panel import Panel

from apkgate.cli.commands.common import console, fail, load_agent
from apkgate.cli.commands.prepare import status_markup
from apkgate.errors import AgentError


def build_cmd(
    ctx: typer.Context,
    commit: str = typer.Argument(
        None,
        help="Commit SHA whose newest preparation should be built.",
    ),
    preparation_id: str = typer.Option(
        None,
        "--preparation-id",
        "-p",
        help="Build this exact preparation instead of looking one up.",
    ),
) -> None:
    """Trigger a MANUAL APK build from a ready preparation."""
    agent = load_agent(ctx)
    try:
        outcome = agent.build(commit, preparation_id)
    except AgentError as exc:
        raise fail(exc)

    lines = [
        f"[bold]Preparation ID:[/bold] {outcome.preparation_id}",
        f"[bold]Status:[/bold]         {status_markup(outcome.status)}",
        f"[bold]Executed:[/bold]       {'remote CI' if outcome.delegated else 'locally'}",
    ]
    if outcome.simulated:
        lines.append("[bold yellow]SIMULATED build: no Android SDK, placeholder package[/bold yellow]")
    if outcome.artifact is not None:
        lines += [
            f"[bold]Artifact:[/bold]       {outcome.artifact.name}",
            f"[bold]Checksum:[/bold]       {outcome.artifact.checksum}",
        ]
    if outcome.timed_out:
        lines.append("[yellow]Timed out waiting for remote build; it may still finish.[/yellow]")
    if outcome.error:
        lines.append(f"[red]{outcome.error}[/red]")

    border = "green" if outcome.succeeded else ("yellow" if outcome.timed_out else "red")
    console.print(Panel("\n".join(lines), title="[bold]APK Build[/bold]", border_style=border, padding=(1, 2)))

    if not outcome.succeeded and not outcome.timed_out:
        raise typer.Exit(code=1)

"""``apkgate prepare [COMMIT]`` and ``apkgate list-preparations``."""

from __future__ import annotations

import typer
from rich.panel import Panel
from rich.table import Table

from apkgate.cli.commands.common import console, fail, load_agent
from apkgate.errors import AgentError
from apkgate.models.preparation import PreparationStatus

_STATUS_STYLE = {
    PreparationStatus.PREPARING: "yellow",
    PreparationStatus.VALIDATING: "yellow",
    PreparationStatus.READY_FOR_BUILD: "bold green",
    PreparationStatus.PREPARATION_FAILED: "red",
    PreparationStatus.BUILDING: "cyan",
    PreparationStatus.BUILD_COMPLETE: "green",
    PreparationStatus.BUILD_FAILED: "red",
}


def status_markup(status: PreparationStatus) -> str:
    style = _STATUS_STYLE.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def prepare_cmd(
    ctx: typer.Context,
    commit: str = typer.Argument(
        None,
        help="Commit SHA to prepare. Defaults to the tracked branch head.",
    ),
) -> None:
    """Prepare the APK build environment for a commit (no build)."""
    agent = load_agent(ctx)
    try:
        record = agent.prepare(commit)
    except AgentError as exc:
        raise fail(exc)

    border = "green" if record.is_ready else "yellow"
    if record.status == PreparationStatus.PREPARATION_FAILED:
        border = "red"
    lines = [
        f"[bold]Preparation ID:[/bold]  {record.preparation_id}",
        f"[bold]Commit:[/bold]          {record.commit_sha}",
        f"[bold]Status:[/bold]          {status_markup(record.status)}",
        f"[bold]Environment:[/bold]     {'validated' if record.environment_validated else 'no local SDK'}",
        f"[bold]Dependencies:[/bold]    {'ready' if record.dependencies_ready else 'not ready'}",
        f"[bold]Delegated:[/bold]       {'yes' if record.delegated else 'no (local)'}",
    ]
    if record.is_ready:
        lines += ["", f"[bold]MANUAL TRIGGER REQUIRED:[/bold] apkgate build {record.commit_sha}"]
    console.print(
        Panel("\n".join(lines), title="[bold]APK Preparation[/bold]", border_style=border, padding=(1, 2))
    )
    if record.status == PreparationStatus.PREPARATION_FAILED:
        raise typer.Exit(code=1)


def list_preparations_cmd(ctx: typer.Context) -> None:
    """List preparation records, oldest first."""
    agent = load_agent(ctx)
    records = agent.list_preparations()
    if not records:
        console.print("[dim]No preparations found.[/dim]")
        return

    table = Table(title="Preparations")
    table.add_column("Preparation ID", style="cyan")
    table.add_column("Commit")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Prepared")
    for r in records:
        table.add_row(
            r.preparation_id,
            r.short_commit,
            r.build_type,
            status_markup(r.status),
            r.prepared_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)

"""``apkgate health-check`` and ``apkgate config``."""

from __future__ import annotations

import typer
from rich.panel import Panel
from rich.table import Table

from apkgate.cli.commands.common import console, load_agent

_SECRET_FIELDS = {"github_token", "webhook_url", "slack_webhook", "discord_webhook"}


def health_cmd(ctx: typer.Context) -> None:
    """Check directories, configuration, tools and GitHub reachability."""
    agent = load_agent(ctx)
    report = agent.health_check()

    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Check", min_width=16)
    table.add_column("Status", width=10, justify="center")
    table.add_column("Details")
    for check in report.checks:
        if check.ok:
            status = "[green]OK[/green]"
        elif check.fatal:
            status = "[red]FAIL[/red]"
        else:
            status = "[yellow]WARN[/yellow]"
        table.add_row(check.name, status, check.detail)

    if report.healthy:
        subtitle = "[bold green]Health check passed.[/bold green]"
        border = "green"
    else:
        subtitle = f"[bold red]Health check failed with {report.issues} issues.[/bold red]"
        border = "red"
    console.print(Panel(table, title="[bold]APK Agent Health[/bold]", subtitle=subtitle, border_style=border))
    if not report.healthy:
        raise typer.Exit(code=1)


def config_cmd(ctx: typer.Context) -> None:
    """Show the effective configuration (secrets masked)."""
    agent = load_agent(ctx)
    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in sorted(agent.settings.model_dump().items()):
        shown = "****" if key in _SECRET_FIELDS and value else str(value)
        table.add_row(key, shown)
    console.print(table)

"""
Swordgate CLI - Repository commands.

Refresh the remote repository configuration and list repositories.
"""

import asyncio
from collections.abc import Mapping
from typing import Annotated, Any

import typer
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table
from rich.text import Text

from swordgate.cli.common import (
    CatalogOption,
    DebugOption,
    ExitCode,
    console,
    handle_error,
    open_interface,
    setup_logging,
)
from swordgate.core.models import ProgressEvent


def update_config(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Refresh even if a configuration exists"),
    ] = False,
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Refresh the remote repository configuration.

    Examples:
        swordgate update-config
        swordgate update-config --force
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:

            async def _update() -> Any:
                with Progress(
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    console=console,
                    transient=True,
                ) as progress:
                    task_id = progress.add_task("Updating repositories", total=100)

                    def on_progress(event: ProgressEvent) -> None:
                        progress.update(task_id, completed=event.total_percent)

                    return await sword.update_repository_config(force, on_progress)

            status = asyncio.run(_update())
        finally:
            sword.close()

        console.print()
        if isinstance(status, Mapping):
            table = Table(title="Repository Update", border_style="cyan")
            table.add_column("Repository", style="cyan", no_wrap=True)
            table.add_column("Status", justify="center")
            for name, ok in status.items():
                if name == "result":
                    continue
                table.add_row(name, Text("✓", style="green") if ok else Text("✗", style="red"))
            console.print(table)
        else:
            console.print(
                Panel(
                    Text("Repository configuration updated", style="green"),
                    title="[bold green]✓ Success[/bold green]",
                    border_style="green",
                    expand=False,
                )
            )
        console.print()

    except Exception as e:
        handle_error(e, "update-config")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def repos(
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    List the known remote repositories.

    Examples:
        swordgate repos
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:
            rows = [
                (name, len(sword.get_all_repo_modules(name)), sword.get_repo_languages(name))
                for name in sword.get_repo_names()
            ]
            configured = sword.repository_config_existing()
        finally:
            sword.close()

        if not rows:
            console.print()
            console.print(
                Panel(
                    Text("No repositories configured.", style="yellow"),
                    border_style="yellow",
                    expand=False,
                )
            )
            if not configured:
                console.print("[dim]Run 'swordgate update-config' first[/dim]")
            console.print()
            return

        table = Table(title="Repositories", border_style="cyan")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Modules", justify="right")
        table.add_column("Languages", style="magenta")
        for name, count, languages in rows:
            table.add_row(name, str(count), ", ".join(languages))

        console.print()
        console.print(table)
        console.print()

    except Exception as e:
        handle_error(e, "repos")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

"""
Swordgate CLI - Search command.
"""

import asyncio
from typing import Annotated

import typer
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
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
from swordgate.core.exceptions import OperationCancelledError
from swordgate.core.models import ProgressEvent, SearchResult, SearchScope, SearchType


def search(
    module: Annotated[str, typer.Argument(..., help="Installed module to search")],
    term: Annotated[str, typer.Argument(..., help="Search term")],
    search_type: Annotated[
        SearchType | None,
        typer.Option("--type", "-t", help="How the term is interpreted"),
    ] = None,
    scope: Annotated[
        SearchScope | None,
        typer.Option("--scope", "-s", help="Whole bible, Old or New Testament"),
    ] = None,
    case_sensitive: Annotated[
        bool,
        typer.Option("--case-sensitive", help="Match letter case exactly"),
    ] = False,
    extended: Annotated[
        bool,
        typer.Option("--extended", help="Let matches span verse boundaries"),
    ] = False,
    word_boundaries: Annotated[
        bool,
        typer.Option("--word-boundaries", help="Only match whole words"),
    ] = False,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Show at most this many results (0 for all)"),
    ] = 0,
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Search an installed module.

    Options not given fall back to the configured search defaults.
    Press Ctrl+C to terminate a long-running search.

    Examples:
        swordgate search KJV faith
        swordgate search KJV "faith hope" --type multiWord --scope NT
        swordgate search KJV G4102 --type strongsNumber
    """
    setup_logging(debug)

    # Flags left off keep the configured defaults.
    options: dict[str, object] = {"search_type": search_type, "search_scope": scope}
    if case_sensitive:
        options["case_sensitive"] = True
    if extended:
        options["extended_boundaries"] = True
    if word_boundaries:
        options["word_boundary_filter"] = True

    try:
        sword = open_interface(catalog)
        try:

            async def _search() -> list[SearchResult]:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                    transient=True,
                ) as progress:
                    task_id = progress.add_task(f"Searching {module} for '{term}'...", total=None)

                    def on_progress(event: ProgressEvent) -> None:
                        progress.update(
                            task_id,
                            description=f"Searching {module} for '{term}'... {event.total_percent}%",
                        )

                    handle = sword.get_module_search_results(
                        module, term, progress_callback=on_progress, **options
                    )
                    try:
                        return await asyncio.shield(handle.future)
                    except asyncio.CancelledError:
                        if not sword.terminate_search():
                            raise
                        return await handle.future

            results = asyncio.run(_search())
        finally:
            sword.close()

    except OperationCancelledError:
        console.print("[yellow]Search terminated[/yellow]")
        raise typer.Exit(ExitCode.SIGINT)
    except Exception as e:
        handle_error(e, "search")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    console.print()
    if not results:
        console.print(
            Panel(
                Text(f"No results for '{term}' in {module}.", style="yellow"),
                border_style="yellow",
                expand=False,
            )
        )
        console.print()
        return

    shown = results[:limit] if limit > 0 else results
    table = Table(title=f"Results for '{term}' in {module}", border_style="cyan")
    table.add_column("Reference", style="cyan", no_wrap=True)
    table.add_column("Text", style="white")
    for result in shown:
        table.add_row(result.reference, result.content)
    console.print(table)
    console.print()
    console.print(f"[dim]{len(results)} verse(s) found[/dim]")

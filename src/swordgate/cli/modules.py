"""
Swordgate CLI - Module commands.

Install, uninstall, inspect and unlock modules.
"""

import asyncio
from typing import Annotated

import typer
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table
from rich.text import Text

from swordgate.cli.common import (
    CatalogOption,
    DebugOption,
    ExitCode,
    RepoOption,
    console,
    handle_error,
    open_interface,
    setup_logging,
)
from swordgate.core.exceptions import NotFoundError, OperationCancelledError
from swordgate.core.models import ModuleInfo, ProgressEvent

ModuleArgument = Annotated[str, typer.Argument(..., help="Module code, e.g. KJV")]


def _success(message: str) -> None:
    console.print()
    console.print(
        Panel(
            Text(message, style="green"),
            title="[bold green]✓ Success[/bold green]",
            border_style="green",
            expand=False,
        )
    )
    console.print()


def install(
    module: ModuleArgument,
    repo: RepoOption = None,
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Install a module from a remote repository.

    Press Ctrl+C while the download runs to cancel the installation.

    The catalog engine keeps installed modules in memory, so the module
    is gone when the command exits. List a module under ``installed`` in
    the catalog file to make it available to later commands.

    Examples:
        swordgate install KJV
        swordgate install KJV --repo CrossWire
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:

            async def _install() -> None:
                with Progress(
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    console=console,
                ) as progress:
                    task_id = progress.add_task(f"Installing {module}", total=100)

                    def on_progress(event: ProgressEvent) -> None:
                        if event.message:
                            progress.update(task_id, description=event.message)
                        progress.update(task_id, completed=event.total_percent)

                    handle = sword.install_module(module, repo, on_progress)
                    try:
                        await asyncio.shield(handle.future)
                    except asyncio.CancelledError:
                        if not sword.cancel_installation():
                            raise
                        progress.update(task_id, description=f"Cancelling {module}")
                        await handle.future

            asyncio.run(_install())
        finally:
            sword.close()

        _success(f"Installed module {module}")

    except OperationCancelledError:
        console.print(f"[yellow]Installation of {module} cancelled[/yellow]")
        raise typer.Exit(ExitCode.SIGINT)
    except Exception as e:
        handle_error(e, "install")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def uninstall(
    module: ModuleArgument,
    repo: RepoOption = None,
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Remove a locally installed module.

    Examples:
        swordgate uninstall KJV
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:

            async def _uninstall() -> None:
                await sword.uninstall_module(module, repo)

            asyncio.run(_uninstall())
        finally:
            sword.close()

        _success(f"Uninstalled module {module}")

    except Exception as e:
        handle_error(e, "uninstall")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def describe(
    module: ModuleArgument,
    repo: RepoOption = None,
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Show a module's repository metadata.

    Examples:
        swordgate describe KJV
        swordgate describe KJV --repo CrossWire
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:
            info = sword.get_repo_module(module, repo)
        finally:
            sword.close()

        details = Table(show_header=False, box=None)
        details.add_column("Field", style="cyan", no_wrap=True)
        details.add_column("Value", style="white")
        details.add_row("Description", info.description)
        details.add_row("Repository", info.repository or "")
        details.add_row("Language", info.language)
        details.add_row("Type", info.module_type)
        details.add_row("Version", info.version or "-")
        details.add_row("Locked", "yes" if info.locked else "no")
        details.add_row("Installed", "yes" if info.in_user_dir else "no")

        console.print()
        console.print(Panel(details, title=f"[bold cyan]{info.name}[/bold cyan]", border_style="cyan", expand=False))
        console.print()

    except NotFoundError as e:
        handle_error(e, "describe")
        raise typer.Exit(ExitCode.NOT_FOUND)
    except Exception as e:
        handle_error(e, "describe")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def available(
    module: ModuleArgument,
    repo: RepoOption = None,
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Check whether a repository offers a module.

    Exits with status 2 when the module is not available.

    Examples:
        swordgate available KJV --repo CrossWire
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:
            is_available = sword.is_module_available_in_repo(module, repo)
        finally:
            sword.close()
    except Exception as e:
        handle_error(e, "available")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    where = f"repository {repo}" if repo else "any repository"
    if not is_available:
        console.print(f"[yellow]{module} is not available in {where}[/yellow]")
        raise typer.Exit(ExitCode.NOT_FOUND)
    console.print(f"[green]{module} is available in {where}[/green]")


def _module_table(title: str, modules: list[ModuleInfo]) -> Table:
    table = Table(title=title, border_style="cyan")
    table.add_column("Module", style="cyan", no_wrap=True)
    table.add_column("Language", style="magenta")
    table.add_column("Description", style="white")
    table.add_column("Installed", justify="center")
    for info in sorted(modules, key=lambda m: m.name):
        table.add_row(info.name, info.language, info.description, "✓" if info.in_user_dir else "")
    return table


def list_modules(
    repo: Annotated[
        str | None,
        typer.Argument(help="Repository to list (installed modules when omitted)"),
    ] = None,
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    List the modules of a repository, or the installed modules.

    Examples:
        swordgate modules
        swordgate modules CrossWire
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:
            if repo is None:
                modules = sword.get_all_local_modules()
                title = "Installed Modules"
            else:
                modules = sword.get_all_repo_modules(repo)
                title = f"Modules in {repo}"
        finally:
            sword.close()

        if not modules:
            console.print()
            console.print(
                Panel(
                    Text("No modules found.", style="yellow"),
                    border_style="yellow",
                    expand=False,
                )
            )
            console.print()
            return

        console.print()
        console.print(_module_table(title, modules))
        console.print()
        console.print(f"[dim]Total: {len(modules)} module(s)[/dim]")

    except NotFoundError as e:
        handle_error(e, "modules")
        raise typer.Exit(ExitCode.NOT_FOUND)
    except Exception as e:
        handle_error(e, "modules")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def unlock(
    module: ModuleArgument,
    key: Annotated[str, typer.Argument(..., help="Unlock key for the module")],
    catalog: CatalogOption = None,
    debug: DebugOption = False,
) -> None:
    """
    Store the unlock key of a locked module.

    Examples:
        swordgate unlock LOCKED_MOD 0123456789abcdef
    """
    setup_logging(debug)

    try:
        sword = open_interface(catalog)
        try:
            sword.save_module_unlock_key(module, key)
        finally:
            sword.close()

        _success(f"Saved unlock key for {module}")

    except Exception as e:
        handle_error(e, "unlock")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

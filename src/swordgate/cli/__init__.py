"""
Swordgate CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import typer
from rich.table import Table

from swordgate import __version__
from swordgate.cli import modules, repos, search
from swordgate.cli.common import DebugOption, console, setup_logging
from swordgate.core.config.env import load_layered_env
from swordgate.core.engine import list_engines

# Help panel names for command grouping
PANEL_MODULES = "Manage Modules"
PANEL_REPOS = "Repositories"
PANEL_SEARCH = "Search"
PANEL_INSTALL = "About This Installation"

# Create the main Typer app
app = typer.Typer(
    name="swordgate",
    help="Install, inspect and search bible modules through a swordgate engine",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


@app.callback()
def main() -> None:
    """
    Swordgate - async interface over a module engine.

    Quick Start:
        swordgate update-config          # Fetch repository configuration
        swordgate install KJV            # Install a module
        swordgate search KJV faith       # Search it

    Every command accepts --catalog PATH to point the catalog engine at a
    JSON or YAML catalog, and --debug for verbose logging.
    """
    # Load layered env files early so SWORDGATE_* settings reach the config.
    # Precedence: OS env > project .env > user .env
    load_layered_env()


# =============================================================================
# Modules
# =============================================================================

app.command(name="install", rich_help_panel=PANEL_MODULES)(modules.install)
app.command(name="uninstall", rich_help_panel=PANEL_MODULES)(modules.uninstall)
app.command(name="describe", rich_help_panel=PANEL_MODULES)(modules.describe)
app.command(name="available", rich_help_panel=PANEL_MODULES)(modules.available)
app.command(name="modules", rich_help_panel=PANEL_MODULES)(modules.list_modules)
app.command(name="unlock", rich_help_panel=PANEL_MODULES)(modules.unlock)


# =============================================================================
# Repositories and search
# =============================================================================

app.command(name="update-config", rich_help_panel=PANEL_REPOS)(repos.update_config)
app.command(name="repos", rich_help_panel=PANEL_REPOS)(repos.repos)
app.command(name="search", rich_help_panel=PANEL_SEARCH)(search.search)


# =============================================================================
# About This Installation
# =============================================================================


@app.command(rich_help_panel=PANEL_INSTALL)
def engines(debug: DebugOption = False) -> None:
    """List the registered engines."""
    setup_logging(debug)

    table = Table(title="Registered Engines", border_style="cyan")
    table.add_column("Engine", style="cyan", no_wrap=True)
    for name in sorted(list_engines()):
        table.add_row(name)

    console.print()
    console.print(table)
    console.print()


@app.command(rich_help_panel=PANEL_INSTALL)
def version() -> None:
    """Show swordgate version and exit."""
    console.print(f"swordgate version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]

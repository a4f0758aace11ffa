"""
Shared helpers for swordgate commands.

Logging setup, error panels, exit codes and the shared command options.
"""

import logging
import sys
import traceback
from enum import IntEnum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from swordgate.core.config import load_config
from swordgate.core.interface import SwordInterface

console = Console()

# Global debug flag
_debug_mode = False


class ExitCode(IntEnum):
    """Exit codes for swordgate commands."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    NOT_FOUND = 2
    SIGINT = 130
    """Operation cancelled with Ctrl+C."""


CatalogOption = Annotated[
    Path | None,
    typer.Option(
        "--catalog",
        "-c",
        help="Catalog file (JSON or YAML) for the catalog engine",
    ),
]

RepoOption = Annotated[
    str | None,
    typer.Option(
        "--repo",
        "-r",
        help="Repository name (resolved automatically when omitted)",
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Log at DEBUG level and show tracebacks on errors",
    ),
]


def setup_logging(debug: bool = False) -> None:
    """
    Send log records to stderr.

    ``--debug`` switches to DEBUG and makes error panels print the
    traceback. Without it the root level is WARNING until the configured
    level is applied in ``open_interface``.
    """
    global _debug_mode
    _debug_mode = debug

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def open_interface(catalog: Path | None = None) -> SwordInterface:
    """
    Build a SwordInterface from the loaded configuration.

    Args:
        catalog: Catalog file overriding ``engine.catalog``
    """
    config = load_config()
    if not _debug_mode:
        logging.getLogger().setLevel(config.logging.level)
    if catalog is not None:
        engine = config.engine.model_copy(update={"catalog": catalog})
        config = config.model_copy(update={"engine": engine})
    return SwordInterface.from_config(config)


def handle_error(error: Exception, command_name: str) -> None:
    """
    Print a failed command's error in a red panel.

    Args:
        error: What the command raised
        command_name: Command shown in the panel
    """
    message = Text.assemble(
        ("Error in ", "bold red"),
        (command_name, "bold yellow"),
        (": ", "bold red"),
        str(error),
    )

    console.print()
    console.print(Panel(message, title=f"[bold red]{type(error).__name__}[/bold red]", border_style="red", expand=False))
    if _debug_mode:
        console.print(traceback.format_exc(), style="dim")
    else:
        console.print("[dim]Re-run with --debug to see the traceback[/dim]")
    console.print()

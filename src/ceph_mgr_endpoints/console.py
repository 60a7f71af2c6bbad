"""Rich console and logging setup.

This module provides the shared Rich console, routes the standard library
logging of the package through it, and toggles debug output at runtime.
"""

import logging

from icecream import ic
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

# Custom theme with consistent colors
_THEME = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "highlight": "cyan bold",
        "muted": "dim",
    }
)

# Shared console instance; stdout is left free for tooling
console = Console(theme=_THEME, stderr=True)

LOGGER_NAME = "ceph_mgr_endpoints"


def configure_logging(debug: bool) -> None:
    """Attach a Rich handler to the package logger.

    Args:
        debug: Start at DEBUG level instead of INFO.

    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers = [
        RichHandler(
            console=console,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%Y-%m-%d %H:%M:%S]",
        )
    ]
    logger.propagate = False
    set_debug(debug)


def set_debug(debug: bool) -> None:
    """Switch debug output on or off in place.

    Adjusts the package log level and enables or disables icecream
    payload dumps.

    Args:
        debug: Whether debug output is wanted.

    """
    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if debug else logging.INFO)
    if debug:
        ic.enable()
    else:
        ic.disable()


def error(message: str) -> None:
    """Print an error message.

    Args:
        message: The message to display.

    """
    console.print(f"[error]✗[/error] {message}")


def summary_panel(title: str, items: dict[str, str]) -> None:
    """Print a summary panel with key-value pairs.

    Args:
        title: Title for the panel.
        items: Dictionary of label -> value pairs to display.

    """
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column(style="cyan")

    for label, value in items.items():
        table.add_row(f"{label}:", value)

    console.print(Panel(table, title=f"[bold]{title}[/bold]", border_style="green"))

"""Rich console utilities for styled terminal output.

This module provides a consistent interface for all operator-facing
output using the Rich library.
"""

from collections.abc import Generator, Iterable
from contextlib import contextmanager

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

_THEME = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "highlight": "cyan bold",
        "muted": "dim",
        "dry": "magenta bold",
    }
)

# Shared console instance
console = Console(theme=_THEME)


def info(message: str) -> None:
    """Print an informational message.

    Args:
        message: The message to display.

    """
    console.print(f"[info]ℹ[/info] {message}")


def success(message: str) -> None:
    """Print a success message.

    Args:
        message: The message to display.

    """
    console.print(f"[success]✓[/success] {message}")


def warning(message: str) -> None:
    """Print a warning message.

    Args:
        message: The message to display.

    """
    console.print(f"[warning]⚠[/warning] {message}")


def error(message: str) -> None:
    """Print an error message.

    Args:
        message: The message to display.

    """
    console.print(f"[error]✗[/error] {message}")


def action(message: str) -> None:
    """Print an action/progress message."""
    console.print(f"[info]→[/info] {message}")


def step(message: str) -> None:
    """Print a sub-step message."""
    console.print(f"[muted]•[/muted] {message}")


def dry_run(message: str) -> None:
    """Print a description of an action that was skipped because of --dry-run."""
    console.print(f"[dry]DRY RUN[/dry] {message}")


def command(cmd: str) -> None:
    """Print a shell command verbatim, without markup interpretation."""
    console.print(f"  [muted]$[/muted] {escape(cmd)}", highlight=False)


def highlight(text: str) -> str:
    """Return text wrapped in highlight markup.

    Args:
        text: The text to highlight.

    Returns:
        Text wrapped in Rich markup for highlighting.

    """
    return f"[highlight]{text}[/highlight]"


def listing(items: Iterable[str], *, empty: str) -> None:
    """Print an indented list of names, or a placeholder when there are none.

    Args:
        items: Names to print, one per line.
        empty: Message shown when ``items`` is empty.

    """
    names = list(items)
    if not names:
        console.print(f"  [muted]{empty}[/muted]")
        return
    for name in names:
        console.print(f"  [muted]-[/muted] {name}")


@contextmanager
def spinner(message: str) -> Generator[None, None, None]:
    """Display a spinner while performing an operation.

    Args:
        message: The status message to display.

    Yields:
        None

    """
    with console.status(f"[info]{message}[/info]", spinner="dots"):
        yield


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


def newline() -> None:
    """Print an empty line."""
    console.print()


@contextmanager
def to_stderr() -> Generator[None, None, None]:
    """Send console output to stderr, leaving stdout to plain writes."""
    previous = console.stderr
    console.stderr = True
    try:
        yield
    finally:
        console.stderr = previous

"""Console output for vaultstack-cli.

Status lines carry a colored marker; tables are used for DNS records and
configuration listings. NO_COLOR and ``--no-color`` switch color off.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.table import Table

# Marker and color per status line kind
MARKERS: dict[str, tuple[str, str]] = {
    "success": ("✓", "green"),
    "error": ("✗", "red"),
    "warning": ("⚠", "yellow"),
}


def create_console(no_color: bool = False) -> Console:
    """Console honoring NO_COLOR in addition to the explicit flag."""
    plain = no_color or "NO_COLOR" in os.environ
    return Console(force_terminal=False if plain else None, no_color=plain)


console = create_console()


def _status(kind: str, message: str, **kwargs: Any) -> None:
    marker, color = MARKERS[kind]
    console.print(f"[{color}]{marker}[/{color}] {message}", **kwargs)


def success(message: str, **kwargs: Any) -> None:
    """Print a success line.

    Example:
        >>> success("Settings valid")
        ✓ Settings valid
    """
    _status("success", message, **kwargs)


def error(message: str, **kwargs: Any) -> None:
    _status("error", message, **kwargs)


def warning(message: str, **kwargs: Any) -> None:
    _status("warning", message, **kwargs)


def info(message: str, **kwargs: Any) -> None:
    """Print a line without a marker."""
    console.print(message, **kwargs)


def print_table(
    columns: Sequence[str],
    rows: Sequence[Sequence[str]],
    *,
    title: str | None = None,
) -> None:
    """Print rows as a table.

    Args:
        columns: Column headers.
        rows: Row values, one string per column.
        title: Optional table title.

    Example:
        >>> print_table(["Key", "Value"], [["SIGNUPS_ALLOWED", "****"]])
    """
    table = Table(title=title)
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in rows:
        table.add_row(*row)
    console.print(table)


def set_no_color(no_color: bool) -> None:
    """Replace the module console with one using the given color setting."""
    global console
    console = create_console(no_color=no_color)

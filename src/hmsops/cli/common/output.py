"""Output formatting utilities for the CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.theme import Theme

from hmsops.core.models import Database

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

# used by drop confirmations
_DESTRUCTIVE_PROMPT = Style.from_dict(
    {
        "qmark": "bold ansired",
        "question": "bold ansibrightred",
        "answer": "bold ansibrightred",
        "instruction": "ansibrightblack",
    }
)

console = Console(theme=_THEME)


def configure_logging(verbose: bool) -> None:
    """Route library logging through Rich; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q(self, message: str) -> str:
        """Prefix Questionary prompts to be hmsops consistent."""
        return f"[hmsops] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Args:
            message: Confirmation question shown to the user.
            default: Default answer if the user just presses enter.

        Returns:
            True if the user confirms, False otherwise.
        """
        console.print("[meta]Use y/n then Enter[/]")
        prompt = questionary.confirm(
            self._q(message),
            default=default,
            style=_DESTRUCTIVE_PROMPT,
            qmark="✦",
            auto_enter=False,
        )
        return bool(prompt.ask())

    def names_table(self, names: Iterable[str], *, column: str, title: str) -> None:
        """Render a single-column table of object names."""
        t = Table(title=title, show_lines=False)
        t.add_column(column, style="ok")

        for name in names:
            t.add_row(str(name))

        console.print(t)

    def database_details(self, db: Database) -> None:
        """
        Render one database: core attributes first, then its parameters.
        """
        self.header(f"Database {db.name}")
        owner = db.owner_name or ""
        if owner and db.owner_type:
            owner = f"{owner} ({db.owner_type.value})"
        self.kv(
            {
                "Catalog": db.catalog_name or "",
                "Description": db.description or "",
                "Location": db.location_uri or "",
                "Owner": owner,
            }
        )
        if not db.parameters:
            return

        t = Table(title="Parameters", show_lines=False)
        t.add_column("Key", style="meta")
        t.add_column("Value")
        for key, value in sorted(db.parameters.items()):
            t.add_row(key, value)
        console.print(t)


out = Out()

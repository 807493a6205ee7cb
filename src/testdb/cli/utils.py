"""
CLI utility helpers -- output formatting and context construction.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from testdb.core.errors import TestDBError
from testdb.provisioning.context import ProvisioningContext, load_context

console = Console()
err_console = Console(stderr=True)


def fail(error: TestDBError) -> NoReturn:
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


def make_context() -> ProvisioningContext:
    """Build the invocation context, turning failures into a clean exit."""
    try:
        return load_context()
    except TestDBError as e:
        fail(e)


def output_rows(rows: list[dict[str, Any]], *, as_json: bool = False, title: str = "") -> None:
    """Render a list of dicts as JSON or a Rich table."""
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(table)


def output_names(names: list[str], *, as_json: bool = False) -> None:
    if as_json:
        console.print_json(json.dumps(names))
        return
    if not names:
        console.print("[dim]No items.[/dim]")
        return
    for name in names:
        console.print(name)

"""
CLI: ``testdb db`` -- maintenance of provisioned databases.
"""

from __future__ import annotations

import typer

from testdb.cli.utils import console, fail, make_context, output_names
from testdb.core.errors import ProvisionError
from testdb.provisioning.context import ManagedDriver, ProvisioningContext

app = typer.Typer(no_args_is_help=True)


def _driver(ctx: ProvisioningContext, engine: str) -> ManagedDriver:
    driver = ctx.driver(engine)
    if driver is None:
        available = ", ".join(d.engine for d in ctx.drivers) or "none"
        console.print(f"[yellow]No available driver for {engine!r}[/yellow] (available: {available})")
        raise typer.Exit(code=1)
    return driver


@app.command("list")
def list_databases(
    engine: str = typer.Argument(..., help="Engine name, e.g. sqlite or postgresql"),
    key: str | None = typer.Option(None, "--key", "-k", help="Only databases for this key"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List databases created by the engine's driver."""
    driver = _driver(make_context(), engine)
    try:
        output_names(driver.databases(key), as_json=json_out)
    except ProvisionError as e:
        fail(e)


@app.command("drop")
def drop(
    engine: str = typer.Argument(..., help="Engine name"),
    names: list[str] | None = typer.Argument(None, help="Databases to drop"),
    drop_all: bool = typer.Option(False, "--all", help="Drop every database of the driver"),
    key: str | None = typer.Option(None, "--key", "-k", help="With --all, only this key"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Drop provisioned databases and forget their directory mappings."""
    driver = _driver(make_context(), engine)
    try:
        targets = driver.databases(key) if drop_all else list(names or [])
        if not targets:
            console.print("[dim]Nothing to drop.[/dim]")
            return
        if not yes:
            typer.confirm(f"Drop {len(targets)} {engine} database(s)?", abort=True)
        for name in targets:
            driver.drop_database(name)
            console.print(f"dropped [cyan]{name}[/cyan]")
    except ProvisionError as e:
        fail(e)

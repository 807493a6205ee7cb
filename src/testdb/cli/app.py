"""
Root Typer application for the ``testdb`` CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from testdb.cli.utils import err_console, make_context, output_names, output_rows

app = Typer(
    name="testdb",
    help="testdb -- test database handles for test suites.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version / logging callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from testdb import __version__

        typer.echo(f"spine-testdb {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override TESTDB_LOG_LEVEL."),
) -> None:
    """testdb CLI -- list drivers, request handles, maintain provisioned databases."""
    from testdb.core.logging import configure_logging
    from testdb.core.settings import get_settings

    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Top-level commands ───────────────────────────────────────────────────


@app.command("drivers")
def list_drivers(
    mode: str = typer.Option("available", "--mode", "-m", help="available, configured or all"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List engine names known to the driver registry."""
    from testdb.api import list_drivers as api_list_drivers
    from testdb.cli.utils import fail
    from testdb.core.errors import ConfigError

    try:
        names = api_list_drivers(mode, context=make_context())  # type: ignore[arg-type]
    except ConfigError as e:
        fail(e)
    output_names(names, as_json=json_out)


@app.command("handles")
def handles(
    engines: list[str] | None = typer.Argument(None, help="Engines to request (default: everything)"),
    min_version: str | None = typer.Option(None, "--min-version", help="Minimum engine version"),
    max_version: str | None = typer.Option(None, "--max-version", help="Maximum engine version"),
    show_password: bool = typer.Option(False, "--show-password", help="Include passwords"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Resolve requests into handles, provisioning databases as needed."""
    from testdb.api import handles as api_handles
    from testdb.core.types import Request

    try:
        requests = [Request(e, min_version=min_version, max_version=max_version) for e in engines or []]
    except ValueError as e:
        err_console.print(f"[bold red]Error[/bold red]: {e}")
        raise typer.Exit(code=2) from e
    result = api_handles(requests, context=make_context())
    output_rows(
        [h.to_dict(include_password=show_password) for h in result],
        as_json=json_out,
        title="Handles",
    )


# ── Sub-command registration ─────────────────────────────────────────────

from testdb.cli.config import app as config_app  # noqa: E402
from testdb.cli.db import app as db_app  # noqa: E402

app.add_typer(db_app, name="db", help="Provisioned database maintenance.")
app.add_typer(config_app, name="config", help="Settings and configuration file.")


if __name__ == "__main__":
    app()

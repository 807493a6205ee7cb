"""
CLI: ``testdb config`` -- settings and configuration file inspection.
"""

from __future__ import annotations

import typer

from testdb.cli.utils import console, fail, output_rows
from testdb.core.errors import ConfigError

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show current settings."""
    from testdb.core.settings import get_settings

    settings = get_settings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"TESTDB_{key.upper()}={'' if value is None else value}")
        return

    output_rows(
        [{"setting": k, "value": v} for k, v in sorted(settings.model_dump().items())],
        title="Settings",
    )


@app.command("validate")
def validate_config(
    path: str | None = typer.Argument(None, help="Configuration file (default: TESTDB_CONFIG_FILE)"),
) -> None:
    """Parse the configuration file and report its blocks."""
    from testdb.core.settings import get_settings
    from testdb.provisioning.config_store import ConfigStore

    target = path or str(get_settings().config_file)
    try:
        specs, drivers = ConfigStore.load_file(target)
    except ConfigError as e:
        fail(e)

    rows = [{"kind": "dsn", "engine": s.engine, "key": s.key} for s in specs]
    rows += [{"kind": "driver_dsn", "engine": d.engine, "key": d.key} for d in drivers]
    output_rows(rows, title=target)
    console.print(f"[green]OK[/green] {len(specs)} dsn, {len(drivers)} driver_dsn block(s)")

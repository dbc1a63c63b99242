"""Root CLI group for teamhub with global flags and command registration."""

from __future__ import annotations

from pathlib import Path

import click

from teamhub import __version__
from teamhub.commands import register_commands
from teamhub.commands._context import AppContext
from teamhub.config.settings import TeamhubSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="teamhub")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("--sync", is_flag=True, help="Force synchronous event dispatch.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Store directory (default: config location or CWD).",
)
@click.option("--as", "acting_user", type=int, default=None, help="Act as this user id.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    sync: bool,
    config_path: str | None,
    root: Path | None,
    acting_user: int | None,
) -> None:
    """teamhub: team collaboration with hierarchical access control."""
    ctx.ensure_object(dict)
    settings = TeamhubSettings.from_cli(
        config_path=config_path,
        root=root,
        json_output=json_output or None,
        quiet=quiet or None,
        verbose=verbose or None,
        log_json=log_json or None,
        sync=sync or None,
        acting_user=acting_user,
    )
    app = AppContext(settings)
    ctx.obj = app
    ctx.call_on_close(app.close)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)

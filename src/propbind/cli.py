"""Root CLI group for propbind with global flags and command registration."""

from __future__ import annotations

import click

from propbind import __version__
from propbind.commands import register_commands
from propbind.commands._base import PbGroup
from propbind.commands._context import AppContext
from propbind.config.settings import PropbindSettings


@click.group(
    cls=PbGroup,
    invoke_without_command=True,
    examples=(
        "propbind -f app.yaml props",
        "propbind -c conf/propbind.toml get server.port",
        "propbind --json bind myapp.config:ServerConfig --key server",
    ),
)
@click.version_option(version=__version__, prog_name="propbind")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option(
    "-f",
    "--file",
    "files",
    multiple=True,
    type=click.Path(dir_okay=False),
    help="Property source (.properties, .yaml, .toml); repeatable, later wins.",
)
@click.option(
    "--allow-private/--no-allow-private",
    "allow_private",
    default=None,
    help="Allow binding tagged underscore-prefixed fields.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    files: tuple[str, ...],
    allow_private: bool | None,
) -> None:
    """propbind — bind configuration properties into typed Python objects."""
    ctx.ensure_object(dict)
    flags: dict[str, object] = {
        "json_output": json_output,
        "quiet": quiet,
        "verbose": verbose,
        "log_json": log_json,
    }
    if files:
        flags["files"] = list(files)
    if allow_private is not None:
        flags["allow_private"] = allow_private
    settings = PropbindSettings.from_cli(config_path=config_path, **flags)
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)

"""Command: bind properties into a dataclass or pydantic model."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from propbind.commands._base import PbCommand

if TYPE_CHECKING:
    from propbind.commands._context import AppContext


@click.command(
    cls=PbCommand,
    examples=(
        "propbind bind myapp.config:ServerConfig",
        "propbind bind myapp.config:DbConfig --key db",
        "propbind bind myapp.config:Endpoint --key endpoints --many list",
        "propbind --allow-private --json bind myapp.config:Secrets --key secrets",
    ),
)
@click.argument("target")
@click.option("--key", default="", help="Root key the target's property names are relative to.")
@click.option(
    "--many",
    type=click.Choice(["list", "dict"]),
    default=None,
    help="Bind a list or a str-keyed dict of TARGET instead of one instance.",
)
@click.pass_obj
def bind(app: AppContext, target: str, key: str, many: str | None) -> None:
    """Bind properties into TARGET, given as 'module:ClassName'."""
    from propbind.services.properties import PropertyService

    svc = PropertyService(app.properties)
    app.emit(
        svc.bind(
            target,
            key=key,
            collection=many or "one",  # type: ignore[arg-type]
            allow_private=app.settings.allow_private_fields,
        )
    )

"""Command: look up a single property."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from propbind.commands._base import PbCommand

if TYPE_CHECKING:
    from propbind.commands._context import AppContext


@click.command(
    cls=PbCommand,
    examples=(
        "propbind get server.port",
        "propbind get server.host --default localhost",
        "propbind -q get db.url",
    ),
)
@click.argument("key")
@click.option("--default", "default", default=None, help="Value used when KEY is not set.")
@click.pass_obj
def get(app: AppContext, key: str, default: str | None) -> None:
    """Print the value of property KEY (case-insensitive)."""
    from propbind.services.properties import PropertyService

    svc = PropertyService(app.properties)
    app.emit(svc.get_property(key, default=default))

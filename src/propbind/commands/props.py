"""Command: list loaded properties."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from propbind.commands._base import PbCommand

if TYPE_CHECKING:
    from propbind.commands._context import AppContext


@click.command(
    cls=PbCommand,
    examples=(
        "propbind props",
        "propbind props server",
        "propbind -f app.yaml -f local.properties props db",
        "propbind --json props",
    ),
)
@click.argument("prefix", required=False)
@click.pass_obj
def props(app: AppContext, prefix: str | None) -> None:
    """List properties, optionally only those under PREFIX."""
    from propbind.services.properties import PropertyService

    svc = PropertyService(app.properties)
    app.emit(svc.list_properties(prefix))

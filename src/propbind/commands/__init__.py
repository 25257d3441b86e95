"""Subcommand modules for propbind.

Provides register_commands() which uses deferred imports to keep
``propbind --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from propbind.commands.bind import bind
    from propbind.commands.get import get
    from propbind.commands.props import props

    cli.add_command(props)
    cli.add_command(get)
    cli.add_command(bind)

"""Click base classes for propbind commands.

``PbCommand`` and ``PbGroup`` take an ``examples`` sequence of full
invocations. ``--examples`` prints them as shell lines and exits; on the
root group it also prints every subcommand's examples, so
``propbind --examples`` works as a quick reference. Subcommands are listed
in registration order (props, get, bind) rather than alphabetically.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import click


def _format_examples(title: str, examples: Sequence[str]) -> str:
    lines = [f"{title}:"]
    lines.extend(f"  $ {example}" for example in examples)
    return "\n".join(lines)


def _examples_option(cmd: PbCommand | PbGroup) -> click.Option:
    """An eager ``--examples`` flag bound to *cmd*."""

    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        blocks = [_format_examples(ctx.command_path, cmd.examples)]
        if isinstance(cmd, PbGroup):
            for name in cmd.list_commands(ctx):
                sub = cmd.get_command(ctx, name)
                if isinstance(sub, PbCommand) and sub.examples:
                    blocks.append(_format_examples(f"{ctx.command_path} {name}", sub.examples))
        click.echo("\n\n".join(blocks))
        ctx.exit(0)

    return click.Option(
        ["--examples"],
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=show_examples,
        help="Show usage examples.",
    )


class PbCommand(click.Command):
    """Command with an ``--examples`` flag."""

    def __init__(self, *args: Any, examples: Sequence[str] = (), **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = tuple(examples)
        if self.examples:
            self.params.append(_examples_option(self))


class PbGroup(click.Group):
    """Group with an ``--examples`` flag covering its subcommands too.

    ``command_class = PbCommand`` lets subcommands pass ``examples=``
    without an explicit ``cls=``.
    """

    command_class = PbCommand

    def __init__(self, *args: Any, examples: Sequence[str] = (), **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = tuple(examples)
        if self.examples:
            self.params.append(_examples_option(self))

    def list_commands(self, ctx: click.Context) -> list[str]:
        return list(self.commands)

"""Subcommand modules for rulectl.

:func:`register_commands` uses deferred imports to keep ``rulectl --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the template group and the standalone commands."""
    from rulectl.commands.template import template

    cli.add_command(template)

    from rulectl.commands.apply import apply
    from rulectl.commands.discover import discover
    from rulectl.commands.history import history
    from rulectl.commands.outdated import outdated
    from rulectl.commands.refresh import refresh
    from rulectl.commands.sync import sync

    cli.add_command(refresh)
    cli.add_command(outdated)
    cli.add_command(apply)
    cli.add_command(sync)
    cli.add_command(discover)
    cli.add_command(history)

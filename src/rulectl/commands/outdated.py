"""Command: list zones missing a template or running an older version."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rulectl.commands._base import RulectlCommand

if TYPE_CHECKING:
    from rulectl.commands._context import AppContext


@click.command(
    cls=RulectlCommand,
    examples="""\
  rulectl outdated R003
  rulectl -q outdated R003   # zone ids only""",
)
@click.argument("template_ref")
@click.pass_obj
def outdated(app: AppContext, template_ref: str) -> None:
    """Diff a template against stored snapshots (run 'refresh' first)."""
    from rulectl.services.resolver import OutdatedDomainResolver

    app.emit(OutdatedDomainResolver(app.workspace).find_outdated(template_ref))

"""Command: show recent propagation runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rulectl.commands._base import RulectlCommand

if TYPE_CHECKING:
    from rulectl.commands._context import AppContext


@click.command(
    cls=RulectlCommand,
    examples="""\
  rulectl history
  rulectl history --limit 5
  rulectl --json history --template 4f6c1e2a-...""",
)
@click.option("--limit", type=click.IntRange(min=0), default=20, show_default=True)
@click.option("--template", "template_id", default=None, help="Filter by template id.")
@click.pass_obj
def history(app: AppContext, limit: int, template_id: str | None) -> None:
    """List propagation runs, newest first."""
    from rulectl.services.app_log import ApplicationLog

    app.emit(ApplicationLog(app.workspace).history(limit=limit, template_id=template_id))

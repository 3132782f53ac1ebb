"""Command: bring every outdated or missing zone up to a template's version."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rulectl.commands._base import RulectlCommand

if TYPE_CHECKING:
    from rulectl.commands._context import AppContext


@click.command(
    cls=RulectlCommand,
    examples="""\
  rulectl refresh && rulectl sync R003
  rulectl --json sync R003""",
)
@click.argument("template_ref")
@click.pass_obj
def sync(app: AppContext, template_ref: str) -> None:
    """Re-sync zones the stored snapshots show as outdated or missing."""
    from rulectl.services.resolver import OutdatedDomainResolver

    def report(done: int, total: int) -> None:
        if app.interactive:
            click.echo(f"synced {done}/{total} zones", err=True)

    svc = OutdatedDomainResolver(app.workspace)
    app.emit(app.run(lambda: svc.sync_outdated(template_ref, progress=report)))

"""Command: rebuild domain rule snapshots from the provider."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rulectl.commands._base import RulectlCommand

if TYPE_CHECKING:
    from rulectl.commands._context import AppContext


@click.command(
    cls=RulectlCommand,
    examples="""\
  rulectl refresh
  rulectl refresh --force
  rulectl refresh 023e105f4ecef8ad9ca31a8372d0c353
  rulectl refresh --summary""",
)
@click.argument("zone_ids", nargs=-1)
@click.option("--force", is_flag=True, help="Ignore the snapshot validity window.")
@click.option("--summary", is_flag=True, help="Summarize stored snapshots without refreshing.")
@click.pass_obj
def refresh(app: AppContext, zone_ids: tuple[str, ...], force: bool, summary: bool) -> None:
    """Analyse zones and store which templates each one carries.

    With one ZONE_ID the zone is always re-read and provider errors are
    reported directly. With several (or none, meaning every zone) failures
    are recorded per zone.
    """
    from rulectl.services.state_index import DomainRuleStateIndex

    svc = DomainRuleStateIndex(app.workspace)
    if summary:
        app.emit(svc.summary())
        return
    if len(zone_ids) == 1:
        app.emit(app.run(lambda: svc.refresh(zone_ids[0])))
        return

    def report(done: int, total: int) -> None:
        if app.interactive:
            click.echo(f"analysed {done}/{total} zones", err=True)

    app.emit(
        app.run(lambda: svc.refresh_many(list(zone_ids) or None, force=force, progress=report))
    )

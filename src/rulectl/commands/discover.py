"""Command: import existing ad-hoc rules as templates."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rulectl.commands._base import RulectlCommand

if TYPE_CHECKING:
    from rulectl.commands._context import AppContext


@click.command(
    cls=RulectlCommand,
    examples="""\
  rulectl discover
  rulectl discover zone-a zone-b
  rulectl --json discover | jq '.data.candidates'""",
)
@click.argument("zone_ids", nargs=-1)
@click.pass_obj
def discover(app: AppContext, zone_ids: tuple[str, ...]) -> None:
    """Classify custom rules on ZONE_IDS (default: all zones) and import the strong ones."""
    from rulectl.services.discovery import AutoDiscoveryImporter

    svc = AutoDiscoveryImporter(app.workspace)
    app.emit(app.run(lambda: svc.run(list(zone_ids) or None)))

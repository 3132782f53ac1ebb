"""Command: propagate a template to zones."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rulectl.commands._base import RulectlCommand
from rulectl.domain.types import ConflictResolution

if TYPE_CHECKING:
    from rulectl.commands._context import AppContext


@click.command(
    cls=RulectlCommand,
    examples="""\
  rulectl apply R003 zone-a zone-b
  rulectl apply R003 zone-a --resolution replace
  rulectl apply R003 zone-a zone-b --preview""",
)
@click.argument("template_ref")
@click.argument("zone_ids", nargs=-1, required=True)
@click.option(
    "--resolution",
    type=click.Choice([r.value for r in ConflictResolution]),
    default=ConflictResolution.SKIP.value,
    show_default=True,
    help="What to do when a zone already has an identical or similar rule.",
)
@click.option("--preview", is_flag=True, help="Detect conflicts only; change nothing.")
@click.pass_obj
def apply(
    app: AppContext,
    template_ref: str,
    zone_ids: tuple[str, ...],
    resolution: str,
    preview: bool,
) -> None:
    """Apply a template to ZONE_IDS in paced batches."""
    from rulectl.services.propagation import BulkPropagationOrchestrator

    svc = BulkPropagationOrchestrator(app.workspace)
    app.emit(
        app.run(
            lambda: svc.apply_by_id(
                template_ref, list(zone_ids), ConflictResolution(resolution), preview=preview
            )
        )
    )

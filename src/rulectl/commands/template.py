"""Command group: template lifecycle (list, show, create, update, delete)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from rulectl.commands._base import RulectlGroup
from rulectl.domain.types import RuleAction

if TYPE_CHECKING:
    from rulectl.commands._context import AppContext

_ACTIONS = click.Choice([a.value for a in RuleAction])


@click.group(
    cls=RulectlGroup,
    examples="""\
  rulectl template list
  rulectl template show R002
  rulectl template create --name "Block SQLi" \\
      --expression 'http.request.uri.query contains "union select"' --action block
  rulectl template update R002 --expression 'http.request.uri.query contains "select"'
  rulectl template delete R002 --force""",
)
def template() -> None:
    """Manage versioned rule templates."""


@template.command(
    "list",
    examples="""\
  rulectl template list
  rulectl template list --enabled-only
  rulectl --json template list --tag auto-discovered""",
)
@click.option("--enabled-only", is_flag=True, help="Hide disabled templates.")
@click.option("--tag", default=None, help="Only templates carrying this tag.")
@click.pass_obj
def list_cmd(app: AppContext, enabled_only: bool, tag: str | None) -> None:
    """List templates ordered by friendly id."""
    from rulectl.services.ledger import TemplateVersionLedger

    ledger = TemplateVersionLedger(app.workspace)
    app.emit(ledger.list_templates(enabled_only=enabled_only, tag=tag))


@template.command(
    examples="""\
  rulectl template show R001
  rulectl template show 4f6c1e2a-...  # full id also accepted
  rulectl template show R001 --usage""",
)
@click.argument("ref")
@click.option("--usage", is_flag=True, help="Show which domains carry the template.")
@click.pass_obj
def show(app: AppContext, ref: str, usage: bool) -> None:
    """Show one template by id or friendly id."""
    if usage:
        from rulectl.services.state_index import DomainRuleStateIndex

        app.emit(DomainRuleStateIndex(app.workspace).usage(ref))
        return

    from rulectl.services.ledger import TemplateVersionLedger

    app.emit(TemplateVersionLedger(app.workspace).get(ref))


def _collect(
    *,
    name: str | None,
    expression: str | None,
    action: str | None,
    description: str | None,
    tags: tuple[str, ...],
    exclude: tuple[str, ...],
    priority: int | None,
    enabled: bool | None,
) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if name is not None:
        fields["name"] = name
    if expression is not None:
        fields["expression"] = expression
    if action is not None:
        fields["action"] = action
    if description is not None:
        fields["description"] = description
    if tags:
        fields["tags"] = list(tags)
    if exclude:
        fields["excluded_domains"] = list(exclude)
    if priority is not None:
        fields["priority"] = priority
    if enabled is not None:
        fields["enabled"] = enabled
    return fields


@template.command(
    examples="""\
  rulectl template create --name "Geo Block" \\
      --expression 'ip.geoip.country in {"CN" "RU"}' --action block
  rulectl template create --name "Login Challenge" \\
      --expression 'http.request.uri.path eq "/login"' --action challenge \\
      --tag auth --exclude staging.example.com""",
)
@click.option("--name", required=True, help="Unique template name.")
@click.option("--expression", required=True, help="Provider rule expression.")
@click.option("--action", required=True, type=_ACTIONS, help="Rule action.")
@click.option("--description", default=None, help="Free-text description.")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable).")
@click.option("--exclude", multiple=True, help="Domain name to exempt (repeatable).")
@click.option("--priority", type=int, default=None, help="Ordering hint.")
@click.option("--disabled", is_flag=True, help="Create the template disabled.")
@click.pass_obj
def create(
    app: AppContext,
    name: str,
    expression: str,
    action: str,
    description: str | None,
    tags: tuple[str, ...],
    exclude: tuple[str, ...],
    priority: int | None,
    disabled: bool,
) -> None:
    """Create a template at version 1.0.0."""
    from rulectl.services.ledger import TemplateVersionLedger

    fields = _collect(
        name=name,
        expression=expression,
        action=action,
        description=description,
        tags=tags,
        exclude=exclude,
        priority=priority,
        enabled=False if disabled else None,
    )
    app.emit(TemplateVersionLedger(app.workspace).create(fields))


@template.command(
    examples="""\
  rulectl template update R001 --expression 'ip.geoip.country in {"CN"}'
  rulectl template update R001 --action challenge
  rulectl template update R001 --description "Tightened" --disable""",
)
@click.argument("ref")
@click.option("--name", default=None, help="New unique name.")
@click.option("--expression", default=None, help="New expression (bumps version).")
@click.option("--action", default=None, type=_ACTIONS, help="New action (bumps version).")
@click.option("--description", default=None, help="New description.")
@click.option("--tag", "tags", multiple=True, help="Replace tags (repeatable).")
@click.option("--exclude", multiple=True, help="Replace excluded domains (repeatable).")
@click.option("--priority", type=int, default=None, help="Ordering hint.")
@click.option("--enable/--disable", "enabled", default=None, help="Toggle the template.")
@click.pass_obj
def update(
    app: AppContext,
    ref: str,
    name: str | None,
    expression: str | None,
    action: str | None,
    description: str | None,
    tags: tuple[str, ...],
    exclude: tuple[str, ...],
    priority: int | None,
    enabled: bool | None,
) -> None:
    """Edit a template; expression or action changes bump the minor version."""
    from rulectl.services.ledger import TemplateVersionLedger

    ledger = TemplateVersionLedger(app.workspace)
    found = ledger.get(ref)
    if not found.ok:
        app.emit(found.model_copy(update={"op": "update_template"}))
        return
    changes = _collect(
        name=name,
        expression=expression,
        action=action,
        description=description,
        tags=tags,
        exclude=exclude,
        priority=priority,
        enabled=enabled,
    )
    app.emit(ledger.update(found.data["template"]["id"], changes))


@template.command(
    examples="""\
  rulectl template delete R004
  rulectl template delete R004 --force""",
)
@click.argument("ref")
@click.option("--force", is_flag=True, help="Delete even if domains still carry the rule.")
@click.pass_obj
def delete(app: AppContext, ref: str, force: bool) -> None:
    """Delete a template. Refused while stored snapshots show it in use."""
    from rulectl.services.ledger import TemplateVersionLedger
    from rulectl.services.result import IN_USE, ServiceResult
    from rulectl.services.state_index import DomainRuleStateIndex

    usage = DomainRuleStateIndex(app.workspace).usage(ref)
    if not usage.ok:
        app.emit(usage.model_copy(update={"op": "delete_template"}))
        return
    if usage.data["in_use"] and not force:
        app.emit(
            ServiceResult.failure(
                "delete_template",
                IN_USE,
                f"Template {usage.data['friendly_id']} is applied on "
                f"{usage.data['domain_count']} domain(s); use --force to delete anyway",
                detail={"domains": usage.data["domains"]},
            )
        )
        return

    warnings: list[str] = []
    if usage.data["in_use"]:
        warnings.append(
            f"Deleted while applied on {usage.data['domain_count']} domain(s); "
            "their rules are now unmanaged"
        )
    result = TemplateVersionLedger(app.workspace).delete(usage.data["template_id"])
    if warnings:
        result = result.model_copy(update={"warnings": [*result.warnings, *warnings]})
    app.emit(result)

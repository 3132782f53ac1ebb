"""AutoDiscoveryImporter — promote ad-hoc zone rules into templates.

Rules are fetched zone by zone in paced batches and scored by the
classifier. Candidates at or above the acceptance threshold become
templates through the ledger; weaker candidates are only reported. Every
rule is checked against the stored templates *and* the ones created
earlier in the same run, so a shared expression is imported once.

Rules that already carry a template friendlyId are not imported. Instead
they are reconciled: a copy whose expression or action drifted from the
ledger and that was edited on the provider after the template's last
update is taken as the newer definition and written back.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from rulectl.domain.classifier import Candidate, RuleExpressionClassifier
from rulectl.domain.ids import parse_rule_name
from rulectl.domain.models import ProviderRule, RuleTemplate
from rulectl.domain.types import CHALLENGE_ACTIONS, RuleAction
from rulectl.errors import PersistenceError, ProviderError
from rulectl.infrastructure.provider import zone_name_map
from rulectl.infrastructure.ratelimit import run_in_batches
from rulectl.services._helpers import normalize_expression, parse_iso
from rulectl.services.base import BaseService
from rulectl.services.ledger import TemplateVersionLedger
from rulectl.services.result import VALIDATION_FAILED, ServiceResult
from rulectl.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from rulectl.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)

AUTO_DISCOVERED_TAG = "auto-discovered"

_ZoneFetch = tuple[str, list[ProviderRule] | None, str | None]


def template_action(action: str) -> RuleAction | None:
    """Map a provider action onto a template action, or None if unsupported.

    Examples:
        >>> template_action("managed_challenge")
        <RuleAction.CHALLENGE: 'challenge'>
        >>> template_action("block")
        <RuleAction.BLOCK: 'block'>
        >>> template_action("redirect") is None
        True
    """
    action = action.lower()
    if action in CHALLENGE_ACTIONS:
        return RuleAction.CHALLENGE
    try:
        return RuleAction(action)
    except ValueError:
        return None


def _drifted(rule: ProviderRule, template: RuleTemplate) -> bool:
    return (
        normalize_expression(rule.expression) != normalize_expression(template.expression)
        or rule.action.lower() != str(template.action)
    )


class AutoDiscoveryImporter(BaseService):
    """Turn existing provider rules into templates."""

    def __init__(
        self, workspace: Workspace, classifier: RuleExpressionClassifier | None = None
    ) -> None:
        super().__init__(workspace)
        self._classifier = classifier or RuleExpressionClassifier()

    async def _fetch(self, zone_ids: Sequence[str]) -> list[_ZoneFetch]:
        provider = self._workspace.provider

        async def work(zone_id: str) -> _ZoneFetch:
            try:
                return zone_id, await provider.get_security_rules(zone_id), None
            except ProviderError as exc:
                logger.warning("Discovery could not read zone %s: %s", zone_id, exc.message)
                return zone_id, None, exc.message

        fetched: list[_ZoneFetch] = []
        async for batch in run_in_batches(zone_ids, work, self._workspace.discovery_policy()):
            fetched.extend(batch)
        return fetched

    def _import(
        self,
        ledger: TemplateVersionLedger,
        candidate: Candidate,
        rule: ProviderRule,
        action: RuleAction,
    ) -> ServiceResult:
        fields: dict[str, Any] = {
            "name": candidate.suggested_name,
            "description": f"Imported from rule {rule.id}: {candidate.description}".strip(),
            "expression": rule.expression,
            "action": action,
            "action_parameters": rule.action_parameters or {},
            "tags": [AUTO_DISCOVERED_TAG, candidate.category.lower()],
        }
        created = ledger.create(fields)
        if created.ok or created.error is None or created.error.code != VALIDATION_FAILED:
            return created
        # Name collision: disambiguate with the friendlyId it will receive.
        fields["name"] = f"{candidate.suggested_name} ({candidate.suggested_friendly_id})"
        return ledger.create(fields)

    def _reconcile(
        self,
        ledger: TemplateVersionLedger,
        rule: ProviderRule,
        template: RuleTemplate,
        zone_id: str,
    ) -> tuple[ServiceResult | None, dict[str, Any]]:
        """Write a newer remote definition back to the ledger."""
        remote = parse_iso(rule.last_updated)
        local = parse_iso(template.updated_at)
        newer = remote is not None and (local is None or remote > local)
        record = {
            "zone_id": zone_id,
            "provider_rule_id": rule.id,
            "friendly_id": template.friendly_id,
            "remote_newer": newer,
        }
        if not newer:
            return None, record
        action = template_action(rule.action)
        changes: dict[str, Any] = {"expression": rule.expression}
        if action is not None:
            changes["action"] = action
        return ledger.update(template.id, changes), record

    @traced
    async def run(self, zone_ids: Sequence[str] | None = None) -> ServiceResult:
        """Analyse *zone_ids* (default: every zone) and import qualifying rules."""
        op = "auto_discovery"
        warnings: list[str] = []
        ledger = TemplateVersionLedger(self._workspace)
        threshold = self._workspace.settings.discovery.acceptance_threshold

        try:
            existing = ledger.templates()
            names = await zone_name_map(
                self._workspace.provider,
                per_page=self._workspace.settings.provider.zones_per_page,
            )
        except (ProviderError, PersistenceError) as exc:
            return ServiceResult.from_exception(op, exc)

        targets = list(names) if zone_ids is None else list(dict.fromkeys(zone_ids))
        with trace_span("fetch_rules"):
            fetched = await self._fetch(targets)

        by_fid = {t.friendly_id: t for t in existing}
        created: list[RuleTemplate] = []
        updated_templates: list[dict[str, Any]] = []
        drifted: list[dict[str, Any]] = []
        reconciled: set[str] = set()
        candidates: list[dict[str, Any]] = []
        failed_zones: list[dict[str, str]] = []
        skipped = 0

        for zone_id, rules, error in fetched:
            domain = names.get(zone_id, zone_id)
            if rules is None:
                failed_zones.append({"zone_id": zone_id, "error": error or ""})
                warnings.append(f"Zone {domain} skipped: {error}")
                continue

            for rule in rules:
                parsed = parse_rule_name(rule.description)
                if parsed is not None and parsed.friendly_id in by_fid:
                    template = by_fid[parsed.friendly_id]
                    if parsed.friendly_id in reconciled or not _drifted(rule, template):
                        continue
                    reconciled.add(parsed.friendly_id)
                    outcome, record = self._reconcile(ledger, rule, template, zone_id)
                    drifted.append(record)
                    if outcome is None:
                        continue
                    if not outcome.ok:
                        return outcome.model_copy(update={"op": op})
                    fresh = RuleTemplate.model_validate(outcome.data["template"])
                    by_fid[fresh.friendly_id] = fresh
                    updated_templates.append(outcome.data["template"])
                    continue

                candidate = self._classifier.classify(rule, [*by_fid.values(), *created])
                if candidate is None:
                    skipped += 1
                    continue
                if candidate.confidence < threshold:
                    candidates.append({**candidate.model_dump(mode="json"), "zone_id": zone_id})
                    skipped += 1
                    continue
                action = template_action(candidate.action)
                if action is None:
                    warnings.append(
                        f"Rule {rule.id} on {domain} uses unsupported action {rule.action!r}"
                    )
                    skipped += 1
                    continue

                result = self._import(ledger, candidate, rule, action)
                if not result.ok:
                    assert result.error is not None
                    if result.error.code != VALIDATION_FAILED:
                        return result.model_copy(update={"op": op})
                    warnings.append(f"Rule {rule.id} not imported: {result.error.message}")
                    skipped += 1
                    continue
                created.append(RuleTemplate.model_validate(result.data["template"]))
                logger.info(
                    "Imported %s from %s (confidence %.2f)",
                    candidate.suggested_name,
                    domain,
                    candidate.confidence,
                )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "imported": len(created),
                "updated": len(updated_templates),
                "skipped": skipped,
                "templates": [t.model_dump(mode="json") for t in created],
                "updated_templates": updated_templates,
                "drifted": drifted,
                "candidates": candidates,
                "zones_analyzed": len(fetched) - len(failed_zones),
                "failed_zones": failed_zones,
            },
            warnings=warnings,
        )

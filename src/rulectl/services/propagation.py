"""BulkPropagationOrchestrator — apply a template across many zones.

Zones are processed in paced batches. Each zone is independent: a provider
failure, an exclusion or an unresolved conflict becomes that zone's result
entry and never aborts the run. Preview runs take exactly the same
conflict-detection path and only skip the provider mutations.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from rulectl.domain.conflicts import find_conflicts
from rulectl.domain.ids import format_rule_name, new_rule_id, parse_rule_name
from rulectl.domain.models import (
    ApplicationLogEntry,
    ApplicationSummary,
    RuleTemplate,
    ZoneResult,
)
from rulectl.domain.types import ConflictResolution
from rulectl.errors import PersistenceError, ProviderError
from rulectl.infrastructure.provider import zone_name_map
from rulectl.infrastructure.ratelimit import BatchPolicy, run_in_batches
from rulectl.services._helpers import now_iso
from rulectl.services.app_log import ApplicationLog
from rulectl.services.base import BaseService
from rulectl.services.ledger import TemplateVersionLedger
from rulectl.services.result import NOT_FOUND, TEMPLATE_DISABLED, ServiceResult
from rulectl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

PREVIEW_RULE_ID = "preview-mode"

ProgressCallback = Callable[[int, int], None]


def rule_payload(template: RuleTemplate) -> dict[str, Any]:
    """Provider rule body for *template*, tagged with its friendlyId and version."""
    payload: dict[str, Any] = {
        "id": new_rule_id(),
        "expression": template.expression,
        "action": str(template.action),
        "description": format_rule_name(
            template.friendly_id, template.version, template.name, template.description
        ),
        "enabled": template.enabled,
    }
    if template.action_parameters:
        payload["action_parameters"] = template.action_parameters
    return payload


class BulkPropagationOrchestrator(BaseService):
    """Apply and re-sync templates on provider zones."""

    async def _zone_names(self) -> dict[str, str]:
        return await zone_name_map(
            self._workspace.provider,
            per_page=self._workspace.settings.provider.zones_per_page,
        )

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def _apply_zone(
        self,
        template: RuleTemplate,
        zone_id: str,
        domain_name: str | None,
        resolution: ConflictResolution,
        preview: bool,
        policy: BatchPolicy,
        warnings: list[str],
    ) -> ZoneResult:
        if domain_name is None:
            return ZoneResult(zone_id=zone_id, domain_name=zone_id, error="Zone not found")
        result = ZoneResult(zone_id=zone_id, domain_name=domain_name)

        if template.excludes(domain_name):
            result.error = f"Domain {domain_name} is excluded from template {template.friendly_id}"
            return result

        provider = self._workspace.provider
        try:
            rules = await provider.get_security_rules(zone_id)
            result.conflicts = find_conflicts(zone_id, template.expression, rules)

            if result.conflicts:
                count = len(result.conflicts)
                if resolution == ConflictResolution.SKIP:
                    result.error = f"Skipped: {count} conflicting rule(s) found"
                    return result
                if resolution == ConflictResolution.MANUAL:
                    result.error = f"Manual resolution required for {count} conflicting rule(s)"
                    return result
                if resolution == ConflictResolution.MERGE:
                    result.error = "Merge resolution not yet implemented"
                    return result
                if not preview:
                    for conflict in result.conflicts:
                        try:
                            await provider.remove_rule(zone_id, conflict.provider_rule_id)
                        except ProviderError as exc:
                            logger.warning(
                                "Could not remove conflicting rule %s on %s: %s",
                                conflict.provider_rule_id,
                                domain_name,
                                exc.message,
                            )
                            warnings.append(
                                f"{domain_name}: could not remove conflicting rule "
                                f"{conflict.provider_rule_id}: {exc.message}"
                            )

            if preview:
                result.applied_rule_id = PREVIEW_RULE_ID
            else:
                payload = rule_payload(template)
                await provider.add_rule(zone_id, payload)
                result.applied_rule_id = payload["id"]
            result.success = True
        except ProviderError as exc:
            if exc.retry_after:
                policy.note_retry_after(exc.retry_after)
            logger.warning("Propagation to %s failed: %s", domain_name, exc.message)
            result.success = False
            result.error = exc.message
        return result

    @traced
    async def apply(
        self,
        template: RuleTemplate,
        zone_ids: Sequence[str],
        resolution: ConflictResolution = ConflictResolution.SKIP,
        *,
        preview: bool = False,
    ) -> ServiceResult:
        """Apply *template* to *zone_ids*; log the run unless *preview*."""
        op = "apply_template"
        warnings: list[str] = []
        resolution = ConflictResolution(resolution)
        targets = list(dict.fromkeys(zone_ids))

        try:
            names = await self._zone_names()
        except ProviderError as exc:
            return ServiceResult.from_exception(op, exc)

        policy = self._workspace.propagation_policy()
        results: list[ZoneResult] = []

        async def work(zone_id: str) -> ZoneResult:
            return await self._apply_zone(
                template, zone_id, names.get(zone_id), resolution, preview, policy, warnings
            )

        with trace_span("propagate_batches") as span:
            async for batch in run_in_batches(targets, work, policy):
                results.extend(batch)
                logger.info(
                    "Propagated %s to %d/%d zones",
                    template.friendly_id,
                    len(results),
                    len(targets),
                )
            if span:
                span.annotate("zones", len(targets))

        summary = ApplicationSummary.from_results(results)
        data: dict[str, Any] = {
            "template_id": template.id,
            "friendly_id": template.friendly_id,
            "version": template.version,
            "conflict_resolution": str(resolution),
            "preview": preview,
            "results": [r.model_dump(mode="json") for r in results],
            "summary": summary.model_dump(mode="json"),
        }

        if not preview:
            entry = ApplicationLogEntry(
                id=new_rule_id(),
                template_id=template.id,
                template_name=template.name,
                target_zone_ids=targets,
                conflict_resolution=resolution,
                timestamp=now_iso(),
                results=results,
                summary=summary,
            )
            try:
                ApplicationLog(self._workspace).append(entry)
            except PersistenceError as exc:
                return ServiceResult.failure(
                    op, exc.code, exc.message, detail={**exc.detail, **data}, warnings=warnings
                )
            data["log_entry_id"] = entry.id

        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    async def apply_by_id(
        self,
        template_ref: str,
        zone_ids: Sequence[str],
        resolution: ConflictResolution = ConflictResolution.SKIP,
        *,
        preview: bool = False,
    ) -> ServiceResult:
        """Look up a template by id or friendlyId, then :meth:`apply` it."""
        op = "apply_template"
        try:
            template = TemplateVersionLedger(self._workspace).find(template_ref)
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)
        if template is None:
            return ServiceResult.failure(
                op, NOT_FOUND, f"No template found with ID: {template_ref}"
            )
        if not template.enabled:
            return ServiceResult.failure(
                op,
                TEMPLATE_DISABLED,
                f"Template {template.friendly_id} is disabled",
                detail={"template_id": template.id},
            )
        return await self.apply(template, zone_ids, resolution, preview=preview)

    # ------------------------------------------------------------------
    # Re-sync
    # ------------------------------------------------------------------

    async def _resync_zone(self, template: RuleTemplate, zone_id: str) -> None:
        provider = self._workspace.provider
        rules = await provider.get_security_rules(zone_id)
        for rule in rules:
            parsed = parse_rule_name(rule.description)
            if parsed is not None and parsed.friendly_id == template.friendly_id:
                await provider.remove_rule(zone_id, rule.id)
        await provider.add_rule(zone_id, rule_payload(template))

    @traced
    async def resync(
        self,
        template: RuleTemplate,
        zone_ids: Sequence[str],
        *,
        progress: ProgressCallback | None = None,
    ) -> ServiceResult:
        """Bring *zone_ids* to the template's current version, one zone at a time.

        Older copies of the template rule are replaced. *progress* receives
        ``(completed, total)`` after every zone, failures included.
        """
        op = "resync_template"
        targets = list(dict.fromkeys(zone_ids))
        total = len(targets)
        policy = self._workspace.propagation_policy()
        successful = 0
        failed: list[dict[str, str]] = []

        for completed, zone_id in enumerate(targets, start=1):
            await policy.acquire()
            try:
                await self._resync_zone(template, zone_id)
                successful += 1
            except ProviderError as exc:
                if exc.retry_after:
                    policy.note_retry_after(exc.retry_after)
                logger.warning(
                    "Re-sync of %s on %s failed: %s", template.friendly_id, zone_id, exc.message
                )
                failed.append({"zone_id": zone_id, "error": exc.message})
            if progress is not None:
                progress(completed, total)

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "template_id": template.id,
                "friendly_id": template.friendly_id,
                "version": template.version,
                "total": total,
                "successful": successful,
                "failed": failed,
            },
            warnings=[f"Zone {f['zone_id']}: {f['error']}" for f in failed],
        )

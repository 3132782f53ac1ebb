"""OutdatedDomainResolver — which zones need a template, and bringing them up to date."""

from __future__ import annotations

import logging
from typing import Any

from rulectl.domain.models import RuleTemplate
from rulectl.domain.outdated import find_outdated_domains
from rulectl.domain.types import AffectedReason
from rulectl.errors import PersistenceError
from rulectl.services.base import BaseService
from rulectl.services.ledger import TemplateVersionLedger
from rulectl.services.propagation import BulkPropagationOrchestrator, ProgressCallback
from rulectl.services.result import NOT_FOUND, TEMPLATE_DISABLED, ServiceResult
from rulectl.services.state_index import DomainRuleStateIndex
from rulectl.services.telemetry import traced

logger = logging.getLogger(__name__)


class OutdatedDomainResolver(BaseService):
    """Diff templates against stored snapshots."""

    def _lookup(self, op: str, template_ref: str) -> RuleTemplate | ServiceResult:
        try:
            template = TemplateVersionLedger(self._workspace).find(template_ref)
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)
        if template is None:
            return ServiceResult.failure(
                op, NOT_FOUND, f"No template found with ID: {template_ref}"
            )
        return template

    @traced
    def find_outdated(self, template_ref: str) -> ServiceResult:
        """Zones missing the template or running an older version of it."""
        op = "find_outdated"
        found = self._lookup(op, template_ref)
        if isinstance(found, ServiceResult):
            return found
        return self._report(op, found)

    def _report(self, op: str, template: RuleTemplate) -> ServiceResult:
        try:
            snapshots = DomainRuleStateIndex(self._workspace).snapshots()
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        affected = find_outdated_domains(template, snapshots)
        warnings: list[str] = []
        unanalyzed = [s.domain_name for s in snapshots if s.failed]
        if not snapshots:
            warnings.append("No domain snapshots stored; run 'rulectl refresh' first")
        if unanalyzed:
            warnings.append(
                f"{len(unanalyzed)} domain(s) skipped, last analysis failed: "
                + ", ".join(unanalyzed)
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "template_id": template.id,
                "friendly_id": template.friendly_id,
                "version": template.version,
                "affected": [a.model_dump(mode="json") for a in affected],
                "missing": sum(1 for a in affected if a.reason == AffectedReason.MISSING),
                "outdated": sum(1 for a in affected if a.reason == AffectedReason.OUTDATED),
                "domains_checked": len(snapshots) - len(unanalyzed),
                "unanalyzed": unanalyzed,
            },
            warnings=warnings,
        )

    @traced
    async def sync_outdated(
        self, template_ref: str, *, progress: ProgressCallback | None = None
    ) -> ServiceResult:
        """Re-sync every affected zone, then refresh only those zones."""
        op = "sync_outdated"
        found = self._lookup(op, template_ref)
        if isinstance(found, ServiceResult):
            return found
        template = found
        if not template.enabled:
            return ServiceResult.failure(
                op, TEMPLATE_DISABLED, f"Template {template.friendly_id} is disabled"
            )

        outdated = self._report(op, template)
        if not outdated.ok:
            return outdated

        affected = outdated.data["affected"]
        zone_ids = [a["zone_id"] for a in affected]
        warnings = list(outdated.warnings)
        data: dict[str, Any] = {
            "template_id": template.id,
            "friendly_id": template.friendly_id,
            "version": template.version,
            "affected": affected,
            "successful": 0,
            "failed": [],
            "refreshed": 0,
        }
        if not zone_ids:
            return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

        synced = await BulkPropagationOrchestrator(self._workspace).resync(
            template, zone_ids, progress=progress
        )
        data["successful"] = synced.data["successful"]
        data["failed"] = synced.data["failed"]
        warnings.extend(synced.warnings)

        refreshed = await DomainRuleStateIndex(self._workspace).refresh_many(
            zone_ids, force=True
        )
        if refreshed.ok:
            data["refreshed"] = refreshed.data["analyzed"]
            warnings.extend(refreshed.warnings)
        else:
            assert refreshed.error is not None
            logger.warning("Post-sync refresh failed: %s", refreshed.error.message)
            warnings.append(f"Snapshots not refreshed: {refreshed.error.message}")

        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

"""DomainRuleStateIndex — per-zone snapshots of applied template rules.

A snapshot records which templates a zone carries (by the friendlyId in
each rule's description), at which version, and which rules are ad hoc.
Snapshots are a cache: refreshed explicitly, trusted only within the
configured validity window, and persisted after every analysis batch so
an interrupted run keeps the zones it already finished.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError

from rulectl.domain.ids import parse_rule_name
from rulectl.domain.models import (
    AnalysisMetadata,
    AppliedRule,
    CustomRule,
    DomainRuleStatus,
    ProviderRule,
    RuleTemplate,
    SnapshotCollection,
)
from rulectl.domain.outdated import UNKNOWN_VERSION, domains_using
from rulectl.domain.types import AppliedRuleStatus
from rulectl.domain.versions import compare_versions
from rulectl.errors import PersistenceError, ProviderError
from rulectl.infrastructure.provider import zone_name_map
from rulectl.infrastructure.ratelimit import run_in_batches
from rulectl.infrastructure.store import StoreName
from rulectl.services._helpers import now_iso, parse_iso
from rulectl.services.base import BaseService
from rulectl.services.ledger import TemplateVersionLedger
from rulectl.services.result import NOT_FOUND, ServiceResult
from rulectl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def build_status(
    zone_id: str,
    domain_name: str,
    rules: Sequence[ProviderRule],
    templates: Iterable[RuleTemplate],
    *,
    started: float | None = None,
) -> DomainRuleStatus:
    """Sort a zone's rules into template-applied and custom.

    A second rule carrying an already-seen friendlyId on the same zone is
    marked ``conflict``.
    """
    by_fid = {t.friendly_id: t for t in templates}
    applied: list[AppliedRule] = []
    custom: list[CustomRule] = []
    seen: set[str] = set()

    for rule in rules:
        parsed = parse_rule_name(rule.description)
        template = by_fid.get(parsed.friendly_id) if parsed else None
        if parsed is None or template is None:
            custom.append(
                CustomRule(
                    provider_rule_id=rule.id,
                    expression=rule.expression,
                    action=rule.action,
                    description=rule.description or "",
                    ruleset_id=rule.ruleset_id,
                )
            )
            continue

        version = parsed.version or UNKNOWN_VERSION
        if parsed.friendly_id in seen:
            status = AppliedRuleStatus.CONFLICT
        elif compare_versions(version, template.version) < 0:
            status = AppliedRuleStatus.OUTDATED
        else:
            status = AppliedRuleStatus.ACTIVE
        seen.add(parsed.friendly_id)
        applied.append(
            AppliedRule(
                friendly_id=parsed.friendly_id,
                version=version,
                status=status,
                provider_rule_id=rule.id,
                template_id=template.id,
                name=parsed.name,
            )
        )

    elapsed = (time.perf_counter() - started) * 1000 if started is not None else 0.0
    return DomainRuleStatus(
        zone_id=zone_id,
        domain_name=domain_name,
        applied_rules=applied,
        custom_rules=custom,
        last_analyzed=now_iso(),
        analysis=AnalysisMetadata(
            processing_time_ms=round(elapsed, 2),
            rules_processed=len(rules),
            templates_matched=len(applied),
        ),
    )


def _merge(
    collection: SnapshotCollection, statuses: Iterable[DomainRuleStatus]
) -> SnapshotCollection:
    """Replace entries by zone id, appending unseen zones in order."""
    merged = list(collection.domain_statuses)
    positions = {s.zone_id: i for i, s in enumerate(merged)}
    for status in statuses:
        if status.zone_id in positions:
            merged[positions[status.zone_id]] = status
        else:
            positions[status.zone_id] = len(merged)
            merged.append(status)
    return SnapshotCollection(domain_statuses=merged, last_updated=now_iso())


class DomainRuleStateIndex(BaseService):
    """Build, cache and query zone rule snapshots."""

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> SnapshotCollection:
        raw = self._workspace.store.read(StoreName.DOMAIN_STATUS)
        if raw is None:
            return SnapshotCollection()
        try:
            return SnapshotCollection.model_validate(raw)
        except ValidationError as exc:
            msg = f"Stored domain snapshots are invalid: {exc.error_count()} errors"
            raise PersistenceError(msg) from exc

    def _save(self, collection: SnapshotCollection) -> None:
        self._workspace.store.write(
            StoreName.DOMAIN_STATUS, collection.model_dump(mode="json")
        )

    def snapshots(self, zone_ids: Iterable[str] | None = None) -> list[DomainRuleStatus]:
        """Stored snapshots, optionally limited to *zone_ids* (stored order)."""
        statuses = self.load().domain_statuses
        if zone_ids is None:
            return statuses
        wanted = set(zone_ids)
        return [s for s in statuses if s.zone_id in wanted]

    def _is_fresh(self, timestamp: str) -> bool:
        validity = self._workspace.settings.analysis.cache_validity_minutes
        parsed = parse_iso(timestamp)
        if parsed is None or validity <= 0:
            return False
        return datetime.now(UTC) - parsed < timedelta(minutes=validity)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze_zone(
        self, zone_id: str, domain_name: str, templates: Sequence[RuleTemplate]
    ) -> DomainRuleStatus:
        """Fetch and classify one zone's rules.

        Raises:
            ProviderError: if the provider call fails.
        """
        started = time.perf_counter()
        rules = await self._workspace.provider.get_security_rules(zone_id)
        return build_status(zone_id, domain_name, rules, templates, started=started)

    async def _analyze_or_record(
        self, zone_id: str, domain_name: str, templates: Sequence[RuleTemplate]
    ) -> DomainRuleStatus:
        try:
            return await self.analyze_zone(zone_id, domain_name, templates)
        except ProviderError as exc:
            logger.warning("Analysis failed for %s (%s): %s", domain_name, zone_id, exc.message)
            return DomainRuleStatus(
                zone_id=zone_id,
                domain_name=domain_name,
                last_analyzed=now_iso(),
                analysis=AnalysisMetadata(errors=[exc.message]),
            )

    @traced
    async def refresh(self, zone_id: str, *, domain_name: str | None = None) -> ServiceResult:
        """Re-analyse a single zone. Provider failures surface as PROVIDER_ERROR."""
        op = "refresh_zone"
        try:
            templates = TemplateVersionLedger(self._workspace).templates()
            collection = self.load()
            if domain_name is None:
                known = {s.zone_id: s.domain_name for s in collection.domain_statuses}
                domain_name = known.get(zone_id)
            if domain_name is None:
                names = await zone_name_map(
                    self._workspace.provider,
                    per_page=self._workspace.settings.provider.zones_per_page,
                )
                if zone_id not in names:
                    msg = f"No zone found with ID: {zone_id}"
                    return ServiceResult.failure(op, NOT_FOUND, msg)
                domain_name = names[zone_id]
            status = await self.analyze_zone(zone_id, domain_name, templates)
            self._save(_merge(collection, [status]))
        except (ProviderError, PersistenceError) as exc:
            return ServiceResult.from_exception(op, exc)

        return ServiceResult(ok=True, op=op, data={"status": status.model_dump(mode="json")})

    @traced
    async def refresh_many(
        self,
        zone_ids: Sequence[str] | None = None,
        *,
        force: bool = False,
        progress: ProgressCallback | None = None,
    ) -> ServiceResult:
        """Re-analyse many zones in paced batches.

        With no *zone_ids*, every zone the provider lists is analysed. Zones
        analysed within the validity window are reused unless *force*. A zone
        that fails yields an entry carrying the error; the run continues.
        """
        op = "refresh_domains"
        warnings: list[str] = []
        try:
            templates = TemplateVersionLedger(self._workspace).templates()
            collection = self.load()
            names = await zone_name_map(
                self._workspace.provider,
                per_page=self._workspace.settings.provider.zones_per_page,
            )
        except (ProviderError, PersistenceError) as exc:
            return ServiceResult.from_exception(op, exc)

        if zone_ids is None:
            targets = list(names)
        else:
            targets = list(dict.fromkeys(zone_ids))
            for unknown in [z for z in targets if z not in names]:
                warnings.append(f"Unknown zone skipped: {unknown}")
            targets = [z for z in targets if z in names]

        stored = {s.zone_id: s for s in collection.domain_statuses}
        if not force:
            reused = [
                z
                for z in targets
                if z in stored and not stored[z].failed and self._is_fresh(stored[z].last_analyzed)
            ]
        else:
            reused = []
        pending = [z for z in targets if z not in reused]

        total = len(pending)
        completed = 0
        failed: list[dict[str, str]] = []

        async def work(zone_id: str) -> DomainRuleStatus:
            return await self._analyze_or_record(zone_id, names[zone_id], templates)

        try:
            with trace_span("analyze_batches") as span:
                async for batch in run_in_batches(
                    pending, work, self._workspace.analysis_policy()
                ):
                    collection = _merge(collection, batch)
                    self._save(collection)
                    for status in batch:
                        if status.analysis.errors:
                            failed.append(
                                {"zone_id": status.zone_id, "error": status.analysis.errors[0]}
                            )
                            warnings.append(
                                f"Zone {status.domain_name} could not be analysed: "
                                f"{status.analysis.errors[0]}"
                            )
                    completed += len(batch)
                    logger.info("Analysed %d/%d zones", completed, total)
                    if progress is not None:
                        progress(completed, total)
                if span:
                    span.annotate("zones", total)
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc, warnings=warnings)

        wanted = set(targets)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "analyzed": total - len(failed),
                "reused": len(reused),
                "failed": failed,
                "domain_statuses": [
                    s.model_dump(mode="json")
                    for s in collection.domain_statuses
                    if s.zone_id in wanted
                ],
                "last_updated": collection.last_updated,
            },
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @traced
    def summary(self) -> ServiceResult:
        op = "snapshot_summary"
        try:
            collection = self.load()
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        statuses = collection.domain_statuses
        outdated = sum(
            1
            for s in statuses
            for r in s.applied_rules
            if r.status == AppliedRuleStatus.OUTDATED
        )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "total_domains": len(statuses),
                "domains_with_templates": sum(1 for s in statuses if s.applied_rules),
                "domains_with_custom_rules": sum(1 for s in statuses if s.custom_rules),
                "applied_rules": sum(len(s.applied_rules) for s in statuses),
                "custom_rules": sum(len(s.custom_rules) for s in statuses),
                "outdated_rules": outdated,
                "failed_domains": sum(1 for s in statuses if s.analysis.errors),
                "last_updated": collection.last_updated,
            },
        )

    @traced
    def usage(self, template_ref: str) -> ServiceResult:
        """Which domains carry a template, according to stored snapshots."""
        op = "template_usage"
        try:
            template = TemplateVersionLedger(self._workspace).find(template_ref)
            statuses = self.load().domain_statuses
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)
        if template is None:
            return ServiceResult.failure(
                op, NOT_FOUND, f"No template found with ID: {template_ref}"
            )

        domains = domains_using(template.friendly_id, statuses)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "template_id": template.id,
                "friendly_id": template.friendly_id,
                "in_use": bool(domains),
                "domain_count": len(domains),
                "domains": domains,
            },
        )

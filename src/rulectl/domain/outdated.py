"""Which domains are missing a template, or run a stale version of it.

Pure and order-preserving: the same template and snapshots always yield
the same list, in snapshot order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from rulectl.domain.models import AffectedDomain, DomainRuleStatus, RuleTemplate
from rulectl.domain.types import AffectedReason, SyncAction
from rulectl.domain.versions import compare_versions

# Version assumed for rules pushed under the legacy "R001-Name" convention.
UNKNOWN_VERSION = "1.0.0"


def find_outdated_domains(
    template: RuleTemplate,
    snapshots: Iterable[DomainRuleStatus],
) -> list[AffectedDomain]:
    """Diff *template* against every snapshot.

    - No applied entry for the friendlyId: ``missing`` (add), unless the
      domain is excluded, in which case it is omitted.
    - Applied entry trailing the template version: ``outdated`` (update).
    - Applied entry matching or leading: omitted (no downgrades).
    - Snapshot whose last analysis failed: omitted, its state is unknown.
    """
    affected: list[AffectedDomain] = []
    for snapshot in snapshots:
        if snapshot.failed:
            continue
        entry = snapshot.applied(template.friendly_id)
        if entry is None:
            if template.excludes(snapshot.domain_name):
                continue
            affected.append(
                AffectedDomain(
                    zone_id=snapshot.zone_id,
                    domain_name=snapshot.domain_name,
                    current_version=None,
                    reason=AffectedReason.MISSING,
                    action=SyncAction.ADD,
                )
            )
            continue

        if compare_versions(entry.version or UNKNOWN_VERSION, template.version) < 0:
            affected.append(
                AffectedDomain(
                    zone_id=snapshot.zone_id,
                    domain_name=snapshot.domain_name,
                    current_version=entry.version,
                    reason=AffectedReason.OUTDATED,
                    action=SyncAction.UPDATE,
                )
            )
    return affected


def domains_using(friendly_id: str, snapshots: Sequence[DomainRuleStatus]) -> list[str]:
    """Domain names whose snapshot carries *friendly_id*, in snapshot order."""
    return [s.domain_name for s in snapshots if s.applied(friendly_id) is not None]

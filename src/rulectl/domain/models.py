"""Pydantic models for templates, domain snapshots, and propagation results.

All models round-trip through JSON (``model_dump(mode="json")`` /
``model_validate``) so they can be persisted by the keyed JSON store and
emitted verbatim in ``ServiceResult.data``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from rulectl.domain.types import (
    AffectedReason,
    AppliedRuleStatus,
    ConflictResolution,
    ConflictType,
    RuleAction,
    SyncAction,
)

# --- Templates ---


class RuleTemplate(BaseModel):
    """A versioned, reusable security-rule definition.

    INVARIANT: ``version`` only changes when ``expression`` or ``action``
    changes (see :func:`rulectl.domain.versions.bump_minor`).
    """

    model_config = {"frozen": True}

    id: str
    friendly_id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    expression: str
    action: RuleAction
    action_parameters: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    applicable_tags: list[str] = Field(default_factory=list)
    excluded_domains: list[str] = Field(default_factory=list)
    enabled: bool = True
    priority: int = 0
    created_at: str = ""
    updated_at: str = ""

    @field_validator("excluded_domains")
    @classmethod
    def _dedupe_domains(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    def excludes(self, domain_name: str) -> bool:
        return domain_name in self.excluded_domains


class TemplateCollection(BaseModel):
    """The persisted template set. Always written as a whole."""

    templates: list[RuleTemplate] = Field(default_factory=list)
    last_updated: str = ""


# --- Provider-side objects ---


class Zone(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    name: str
    status: str = ""
    paused: bool = False


class ProviderRule(BaseModel):
    """A rule as returned by the provider's custom-rule phase."""

    model_config = {"extra": "ignore"}

    id: str
    expression: str = ""
    action: str = ""
    action_parameters: dict[str, Any] | None = None
    description: str | None = None
    enabled: bool = True
    ruleset_id: str | None = None
    last_updated: str | None = None


# --- Domain snapshots ---


class AppliedRule(BaseModel):
    friendly_id: str
    version: str
    status: AppliedRuleStatus
    provider_rule_id: str
    template_id: str | None = None
    name: str = ""


class CustomRule(BaseModel):
    provider_rule_id: str
    expression: str = ""
    action: str = ""
    description: str = ""
    ruleset_id: str | None = None


class AnalysisMetadata(BaseModel):
    processing_time_ms: float = 0.0
    rules_processed: int = 0
    templates_matched: int = 0
    errors: list[str] = Field(default_factory=list)


class DomainRuleStatus(BaseModel):
    """Point-in-time read of a zone's template and custom rules.

    A cache, never assumed fresh beyond ``last_analyzed``.
    """

    zone_id: str
    domain_name: str
    applied_rules: list[AppliedRule] = Field(default_factory=list)
    custom_rules: list[CustomRule] = Field(default_factory=list)
    last_analyzed: str = ""
    analysis: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    def applied(self, friendly_id: str) -> AppliedRule | None:
        """Return the first applied entry for *friendly_id*, if any."""
        for rule in self.applied_rules:
            if rule.friendly_id == friendly_id:
                return rule
        return None

    @property
    def failed(self) -> bool:
        return bool(self.analysis.errors) and not self.applied_rules and not self.custom_rules


class SnapshotCollection(BaseModel):
    domain_statuses: list[DomainRuleStatus] = Field(default_factory=list)
    last_updated: str = ""


# --- Transient results ---


class AffectedDomain(BaseModel):
    zone_id: str
    domain_name: str
    current_version: str | None = None
    reason: AffectedReason
    action: SyncAction


class Conflict(BaseModel):
    zone_id: str
    provider_rule_id: str
    expression: str
    action: str
    description: str = ""
    conflict_type: ConflictType
    confidence: float


class ZoneResult(BaseModel):
    zone_id: str
    domain_name: str
    success: bool = False
    error: str | None = None
    applied_rule_id: str | None = None
    conflicts: list[Conflict] = Field(default_factory=list)


class ApplicationSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    conflicts: int = 0

    @classmethod
    def from_results(cls, results: list[ZoneResult]) -> ApplicationSummary:
        return cls(
            total=len(results),
            successful=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success),
            conflicts=sum(len(r.conflicts) for r in results),
        )


class ApplicationLogEntry(BaseModel):
    """One bulk propagation, as recorded in the append-only history."""

    id: str
    template_id: str
    template_name: str
    target_zone_ids: list[str]
    conflict_resolution: ConflictResolution
    timestamp: str
    results: list[ZoneResult] = Field(default_factory=list)
    summary: ApplicationSummary = Field(default_factory=ApplicationSummary)

"""Rule actions, conflict strategies, and status enums."""

from __future__ import annotations

from enum import StrEnum


class RuleAction(StrEnum):
    """Actions a template may instruct the provider to take."""

    BLOCK = "block"
    CHALLENGE = "challenge"
    ALLOW = "allow"
    LOG = "log"
    SKIP = "skip"


class ConflictResolution(StrEnum):
    """How a bulk propagation treats pre-existing conflicting rules."""

    REPLACE = "replace"
    MERGE = "merge"
    SKIP = "skip"
    MANUAL = "manual"


class ConflictType(StrEnum):
    IDENTICAL = "identical"
    SIMILAR = "similar"


class AppliedRuleStatus(StrEnum):
    """Status of a template-derived rule found on a zone."""

    ACTIVE = "active"
    OUTDATED = "outdated"
    CUSTOM = "custom"
    CONFLICT = "conflict"


class AffectedReason(StrEnum):
    """Why a domain needs a template pushed to it."""

    MISSING = "missing"
    OUTDATED = "outdated"


class SyncAction(StrEnum):
    ADD = "add"
    UPDATE = "update"


# Provider actions that count as "blocking or challenging" for classification.
BLOCKING_ACTIONS = frozenset({"block", "challenge"})
CHALLENGE_ACTIONS = frozenset({"challenge", "managed_challenge", "js_challenge"})

"""Conflict detection between a template and rules already on a zone.

Similarity is the Jaccard index over lowercase word tokens. It is a
syntactic heuristic: two expressions that mean the same thing but are
written differently can score low, and two that differ in one critical
operand can score high.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from rulectl.domain.models import Conflict, ProviderRule
from rulectl.domain.types import ConflictType

SIMILARITY_THRESHOLD = 0.8

_TOKEN = re.compile(r"\w+")


def tokenize(expression: str) -> set[str]:
    return set(_TOKEN.findall(expression.lower()))


def similarity(left: str, right: str) -> float:
    """Jaccard index of the two expressions' token sets, in ``[0, 1]``.

    Two expressions with no tokens at all score 0.0.
    """
    a, b = tokenize(left), tokenize(right)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def classify_conflict(
    template_expression: str, rule_expression: str
) -> tuple[ConflictType, float] | None:
    """Return ``(type, confidence)`` or None when the rules do not conflict."""
    if rule_expression == template_expression:
        return ConflictType.IDENTICAL, 1.0
    score = similarity(template_expression, rule_expression)
    if score > SIMILARITY_THRESHOLD:
        return ConflictType.SIMILAR, round(score, 4)
    return None


def find_conflicts(
    zone_id: str,
    template_expression: str,
    rules: Iterable[ProviderRule],
) -> list[Conflict]:
    """Collect every rule on *zone_id* that is identical or similar to the template."""
    conflicts: list[Conflict] = []
    for rule in rules:
        verdict = classify_conflict(template_expression, rule.expression)
        if verdict is None:
            continue
        conflict_type, confidence = verdict
        conflicts.append(
            Conflict(
                zone_id=zone_id,
                provider_rule_id=rule.id,
                expression=rule.expression,
                action=rule.action,
                description=rule.description or "",
                conflict_type=conflict_type,
                confidence=confidence,
            )
        )
    return conflicts

"""Heuristic classification of ad-hoc provider rules into template candidates.

Classification is an ordered list of :class:`ClassifierRule` buckets.
Each bucket is an independent predicate with a weight; confidence is the
sum of the weights of every bucket that fires (capped at 1.0). The
category and suggested name come from the last primary bucket that fired.

When nothing fires but the rule blocks or challenges, the rule still gets
a baseline confidence of 0.5 as a generic custom security rule.

Thresholds:
- below 0.5 — not a candidate (``classify`` returns None)
- 0.5 to 0.7 — reported for review, never auto-created
- 0.7 and above — accepted (see :data:`ACCEPTANCE_THRESHOLD`)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from pydantic import BaseModel

from rulectl.domain.ids import next_friendly_id
from rulectl.domain.models import ProviderRule, RuleTemplate
from rulectl.domain.types import BLOCKING_ACTIONS, CHALLENGE_ACTIONS

CANDIDATE_THRESHOLD = 0.5
ACCEPTANCE_THRESHOLD = 0.7
FALLBACK_CONFIDENCE = 0.5


@dataclass(frozen=True)
class RuleFacts:
    """Normalized view of a rule handed to bucket predicates."""

    expression: str
    action: str

    @classmethod
    def of(cls, rule: ProviderRule) -> RuleFacts:
        return cls(expression=rule.expression, action=rule.action.lower())


@dataclass(frozen=True)
class ClassifierRule:
    """One weighted bucket.

    Non-primary buckets add confidence but only name the category when no
    primary bucket has.
    """

    category: str
    suggested_name: str
    weight: float
    predicate: Callable[[RuleFacts], bool]
    primary: bool = True

    def matches(self, facts: RuleFacts) -> bool:
        return self.predicate(facts)


def expression_contains(*terms: str) -> Callable[[RuleFacts], bool]:
    """Fire when any of *terms* occurs in the expression (case-sensitive)."""
    return lambda facts: any(term in facts.expression for term in terms)


def expression_contains_all(*terms: str) -> Callable[[RuleFacts], bool]:
    return lambda facts: all(term in facts.expression for term in terms)


def any_of(*predicates: Callable[[RuleFacts], bool]) -> Callable[[RuleFacts], bool]:
    return lambda facts: any(p(facts) for p in predicates)


def action_in(actions: Iterable[str]) -> Callable[[RuleFacts], bool]:
    allowed = frozenset(actions)
    return lambda facts: facts.action in allowed


DEFAULT_RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule(
        "SQL_INJECTION",
        "SQL Injection Protection",
        0.8,
        expression_contains("sql", "union", "select", "insert", "delete", "drop"),
    ),
    ClassifierRule(
        "XSS",
        "XSS Protection",
        0.8,
        expression_contains("script", "javascript", "xss", "onclick", "onerror"),
    ),
    ClassifierRule(
        "PATH_TRAVERSAL",
        "File Inclusion Protection",
        0.8,
        expression_contains("..", "/etc/passwd", "php://", "file://", "include"),
    ),
    ClassifierRule(
        "RATE_LIMIT",
        "Rate Limiting",
        0.7,
        expression_contains("rate", "req/s", "requests", "limit", "throttle"),
    ),
    ClassifierRule(
        "BOT_PROTECTION",
        "Bot Protection",
        0.8,
        expression_contains("bot", "crawler", "spider", "user-agent", "automated", "user_agent"),
    ),
    ClassifierRule(
        "GEO_BLOCKING",
        "Geographic Blocking",
        0.7,
        expression_contains("ip.geoip.country", "geoip", "country"),
    ),
    ClassifierRule(
        "WAF_SECURITY",
        "WAF Security Rule",
        0.8,
        any_of(
            expression_contains("whitelist_ip", "$whitelist", "well-known"),
            expression_contains_all("geoip", "bot"),
        ),
    ),
    ClassifierRule(
        "CHALLENGE_SECURITY",
        "Security Challenge",
        0.6,
        action_in(CHALLENGE_ACTIONS),
        primary=False,
    ),
)


class Candidate(BaseModel):
    """A provider rule proposed for promotion into a template."""

    expression: str
    action: str
    description: str = ""
    confidence: float
    category: str
    suggested_name: str
    suggested_friendly_id: str
    source_rule_id: str = ""

    @property
    def accepted(self) -> bool:
        return self.confidence >= ACCEPTANCE_THRESHOLD


_NAME_PREFIX = re.compile(r"^(rule|security|firewall|waf|custom)[:|\s]", re.IGNORECASE)
_NAME_SUFFIX = re.compile(r"\s*(rule|security|firewall|waf)$", re.IGNORECASE)
_NAME_NOISE = re.compile(r"[#\[\]()]")


def extract_rule_name(description: str) -> str:
    """Title-case a rule description, stripping generic prefixes and suffixes.

    Examples:
        >>> extract_rule_name("rule: block wordpress login")
        'Block Wordpress Login'
        >>> extract_rule_name("Geo fence [EU] firewall")
        'Geo Fence Eu'
    """
    text = _NAME_PREFIX.sub("", description)
    text = _NAME_SUFFIX.sub("", text)
    text = _NAME_NOISE.sub("", text).strip()
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" ") if word)


class RuleExpressionClassifier:
    """Scores provider rules against an ordered bucket list."""

    def __init__(self, rules: Sequence[ClassifierRule] = DEFAULT_RULES) -> None:
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[ClassifierRule, ...]:
        return self._rules

    def score(self, rule: ProviderRule) -> tuple[float, str, str]:
        """Return ``(confidence, category, suggested_name)`` before any dedup."""
        facts = RuleFacts.of(rule)
        confidence = 0.0
        category = ""
        name = ""
        for bucket in self._rules:
            if not bucket.matches(facts):
                continue
            confidence += bucket.weight
            if bucket.primary or not category:
                category = bucket.category
                name = bucket.suggested_name

        if confidence == 0.0 and facts.action in BLOCKING_ACTIONS:
            return FALLBACK_CONFIDENCE, "CUSTOM_SECURITY", "Custom Security Rule"
        return min(round(confidence, 4), 1.0), category, name

    def is_duplicate(self, rule: ProviderRule, existing: Iterable[RuleTemplate]) -> bool:
        """A rule duplicates a template by identical expression or by name."""
        extracted = extract_rule_name(rule.description) if rule.description else ""
        for template in existing:
            if template.expression == rule.expression:
                return True
            if extracted and extracted in template.name:
                return True
        return False

    def classify(
        self,
        rule: ProviderRule,
        existing: Sequence[RuleTemplate],
    ) -> Candidate | None:
        """Propose *rule* as a template candidate, or None.

        Returns None for duplicates of *existing* templates and for rules
        scoring below :data:`CANDIDATE_THRESHOLD`.
        """
        if self.is_duplicate(rule, existing):
            return None

        confidence, category, name = self.score(rule)
        if confidence < CANDIDATE_THRESHOLD:
            return None

        if rule.description and rule.description.strip():
            extracted = extract_rule_name(rule.description)
            if len(extracted) > 5:
                name = extracted

        return Candidate(
            expression=rule.expression,
            action=rule.action,
            description=rule.description or "",
            confidence=confidence,
            category=category,
            suggested_name=name,
            suggested_friendly_id=next_friendly_id(t.friendly_id for t in existing),
            source_rule_id=rule.id,
        )

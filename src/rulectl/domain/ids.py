"""FriendlyId generation and the provider rule-name convention.

FriendlyIds are short sequential tokens (``R001``, ``R002``, ...). The
generator fills the lowest gap, so a deleted ``R002`` is reused before
``R004`` is minted.

Rules pushed to the provider carry their template identity in the rule
description::

    R003@1.2.0-Block Bad Bots - Blocks known scrapers

The legacy ``R003-Block Bad Bots`` form (no version) is still recognised.

INVARIANT: A friendlyId, once assigned, never changes for its template.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable
from dataclasses import dataclass

FRIENDLY_ID_PREFIX = "R"
FRIENDLY_ID_PATTERN = re.compile(r"^R(\d{3})$")

_RULE_NAME_PATTERN = re.compile(r"^(R\d{3})(?:@(\d+(?:\.\d+)*))?-(.+)$", re.DOTALL)


@dataclass(frozen=True)
class ParsedRuleName:
    """Template identity recovered from a provider rule description."""

    friendly_id: str
    version: str | None
    name: str


def is_valid_friendly_id(friendly_id: str) -> bool:
    return FRIENDLY_ID_PATTERN.match(friendly_id) is not None


def next_friendly_id(existing: Iterable[str]) -> str:
    """Return the lowest unused ``R###`` token.

    Examples:
        >>> next_friendly_id([])
        'R001'
        >>> next_friendly_id(["R001", "R003"])
        'R002'
        >>> next_friendly_id(["R001", "R002", "custom"])
        'R003'
    """
    used: set[int] = set()
    for fid in existing:
        match = FRIENDLY_ID_PATTERN.match(fid)
        if match:
            used.add(int(match.group(1)))

    number = 1
    while number in used:
        number += 1
    return f"{FRIENDLY_ID_PREFIX}{number:03d}"


def format_rule_name(friendly_id: str, version: str, name: str, description: str = "") -> str:
    """Build the provider-side description for a template-derived rule."""
    base = f"{friendly_id}@{version}-{name}"
    if description:
        return f"{base} - {description}"
    return base


def parse_rule_name(description: str | None) -> ParsedRuleName | None:
    """Recover template identity from a rule description, or None for ad-hoc rules."""
    if not description:
        return None
    match = _RULE_NAME_PATTERN.match(description.strip())
    if match is None:
        return None
    return ParsedRuleName(
        friendly_id=match.group(1),
        version=match.group(2),
        name=match.group(3).strip(),
    )


def new_rule_id() -> str:
    """Fresh identifier for a provider rule (32 hex chars)."""
    return uuid.uuid4().hex


def new_template_id() -> str:
    return str(uuid.uuid4())

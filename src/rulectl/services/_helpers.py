"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime


def now_iso() -> str:
    """Current UTC time as ISO 8601 (timestamps on templates, snapshots, log)."""
    return datetime.now(UTC).isoformat()


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, treating naive values as UTC.

    Examples:
        >>> parse_iso("2024-01-02T03:04:05+00:00").year
        2024
        >>> parse_iso("2024-01-02T03:04:05Z").tzinfo is not None
        True
        >>> parse_iso("garbage") is None
        True
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def normalize_expression(expression: str) -> str:
    """Collapse whitespace so formatting-only edits compare equal.

    Examples:
        >>> normalize_expression('  ip.src  eq\\n 1.2.3.4 ')
        'ip.src eq 1.2.3.4'
    """
    return " ".join(expression.split())

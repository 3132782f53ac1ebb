"""Template version strings: ``major.minor.patch``.

Comparison is per-segment integer comparison, so ``1.10.0`` is newer than
``1.9.0``. Missing segments count as zero (``1.2`` == ``1.2.0``) and a
non-numeric segment also counts as zero.
"""

from __future__ import annotations

INITIAL_VERSION = "1.0.0"


def _segments(version: str) -> list[int]:
    parts: list[int] = []
    for raw in version.strip().split("."):
        try:
            parts.append(int(raw))
        except ValueError:
            parts.append(0)
    return parts


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as *left* is older than, equal to, or newer than *right*.

    Examples:
        >>> compare_versions("1.9.0", "1.10.0")
        -1
        >>> compare_versions("1.2", "1.2.0")
        0
        >>> compare_versions("2.0.0", "1.99.0")
        1
    """
    a, b = _segments(left), _segments(right)
    width = max(len(a), len(b))
    a += [0] * (width - len(a))
    b += [0] * (width - len(b))
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def bump_minor(version: str) -> str:
    """Increment the minor segment, leaving major and patch untouched.

    Examples:
        >>> bump_minor("1.2.0")
        '1.3.0'
        >>> bump_minor("1.9.4")
        '1.10.4'
        >>> bump_minor("2")
        '2.1'
    """
    parts = version.strip().split(".")
    if len(parts) < 2:
        parts.append("0")
    try:
        minor = int(parts[1])
    except ValueError:
        minor = 0
    parts[1] = str(minor + 1)
    return ".".join(parts)

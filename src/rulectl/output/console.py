"""Rich Console factory and theme for rulectl output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich disables color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

RULE_THEME = Theme(
    {
        "rule.ok": "bold green",
        "rule.error": "bold red",
        "rule.warning": "bold yellow",
        "rule.op": "bold cyan",
        "rule.key": "dim",
        "rule.id": "bold blue",
        "rule.version": "magenta",
        "rule.name": "bold",
        "rule.action.block": "red",
        "rule.action.challenge": "yellow",
        "rule.action.allow": "green",
        "rule.action.log": "cyan",
        "rule.action.skip": "dim",
        "rule.score": "magenta",
    }
)

_ACTION_STYLES: dict[str, str] = {
    "block": "rule.action.block",
    "challenge": "rule.action.challenge",
    "allow": "rule.action.allow",
    "log": "rule.action.log",
    "skip": "rule.action.skip",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=RULE_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_action(action: str) -> str:
    return _ACTION_STYLES.get(action, "")

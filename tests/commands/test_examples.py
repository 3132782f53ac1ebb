"""Tests for --examples flag on CLI commands.

Parametrized to cover all commands that define examples text.
"""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from rulectl.cli import cli

# (CLI args, expected keywords in output)
EXAMPLES_COMMANDS: list[tuple[list[str], list[str]]] = [
    (["--examples"], ["rulectl template list", "rulectl refresh --force"]),
    # -- template group --
    (["template", "--examples"], ["rulectl template show R002"]),
    (["template", "list", "--examples"], ["--enabled-only"]),
    (["template", "show", "--examples"], ["--usage"]),
    (["template", "create", "--examples"], ["--exclude staging.example.com"]),
    (["template", "update", "--examples"], ["--disable"]),
    (["template", "delete", "--examples"], ["--force"]),
    # -- standalone commands --
    (["refresh", "--examples"], ["rulectl refresh --summary"]),
    (["outdated", "--examples"], ["rulectl outdated R003"]),
    (["apply", "--examples"], ["--resolution replace", "--preview"]),
    (["sync", "--examples"], ["rulectl sync R003"]),
    (["discover", "--examples"], ["rulectl discover zone-a zone-b"]),
    (["history", "--examples"], ["--limit 5"]),
]


def _examples_id(item: tuple[list[str], list[str]]) -> str:
    """Generate a readable test ID from args."""
    args, _ = item
    return "_".join(a for a in args if a != "--examples") or "root"


@pytest.mark.parametrize(
    "args,expected_keywords",
    EXAMPLES_COMMANDS,
    ids=[_examples_id(item) for item in EXAMPLES_COMMANDS],
)
def test_examples_flag(
    cli_runner: CliRunner, args: list[str], expected_keywords: list[str]
) -> None:
    result = cli_runner.invoke(cli, args)
    assert result.exit_code == 0
    for kw in expected_keywords:
        assert kw in result.output, f"Expected '{kw}' in examples output for {args}"


class TestExamplesInHelp:
    @pytest.mark.parametrize(
        "args",
        [
            ["template", "--help"],
            ["template", "create", "--help"],
            ["apply", "--help"],
            ["refresh", "--help"],
        ],
    )
    def test_examples_in_help(self, cli_runner: CliRunner, args: list[str]) -> None:
        result = cli_runner.invoke(cli, args)
        assert result.exit_code == 0
        assert "--examples" in result.output


class TestExamplesEagerExit:
    """--examples exits before required arguments are validated."""

    def test_apply_without_arguments(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["apply", "--examples"])
        assert result.exit_code == 0
        assert "Examples for" in result.output

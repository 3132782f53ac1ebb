"""Root CLI group for rulectl with global flags and command registration."""

from __future__ import annotations

import click

from rulectl import __version__
from rulectl.commands import register_commands
from rulectl.commands._base import RulectlGroup
from rulectl.commands._context import AppContext
from rulectl.config.settings import RulectlSettings


@click.group(
    cls=RulectlGroup,
    invoke_without_command=True,
    examples="""\
  rulectl template list
  rulectl refresh --force
  rulectl outdated R003
  rulectl apply R003 zone-a zone-b --resolution replace --preview
  rulectl --json history --limit 5""",
)
@click.version_option(version=__version__, prog_name="rulectl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """rulectl — versioned WAF rule templates across many zones."""
    settings = RulectlSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)

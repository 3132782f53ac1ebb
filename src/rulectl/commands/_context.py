"""AppContext — shared Click context for all commands.

Created once by the root CLI group and passed to subcommands via
``@click.pass_obj``. Provides lazy Workspace construction, an event-loop
runner for async service calls, and centralized result emission
(stdout/stderr routing + exit codes).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import click

from rulectl.config.logging import configure_logging
from rulectl.output.formatters import OutputSettings, format_result
from rulectl.services.telemetry import enable_telemetry

if TYPE_CHECKING:
    from rulectl.config.settings import RulectlSettings
    from rulectl.infrastructure.workspace import Workspace
    from rulectl.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The workspace is built on first use so ``--help`` and ``--version``
    never touch the store or require an API token.
    """

    def __init__(self, settings: RulectlSettings, *, workspace: Workspace | None = None) -> None:
        self.settings = settings
        self._workspace = workspace

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()

    @property
    def workspace(self) -> Workspace:
        if self._workspace is None:
            from rulectl.infrastructure.workspace import Workspace

            self._workspace = Workspace(self.settings)
        return self._workspace

    @property
    def interactive(self) -> bool:
        """Whether progress chatter may be written to stderr."""
        return not (self.settings.json_output or self.settings.quiet)

    def run(self, call: Callable[[], Awaitable[ServiceResult]]) -> ServiceResult:
        """Run an async service call to completion, closing provider connections after."""
        workspace = self.workspace

        async def main() -> ServiceResult:
            try:
                return await call()
            finally:
                await workspace.aclose()

        return asyncio.run(main())

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout; warnings go to stderr so piped output stays clean.
        * Failure: stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)

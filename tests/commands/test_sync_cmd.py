"""Tests for the sync command."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from rulectl.cli import cli
from rulectl.infrastructure.workspace import Workspace
from rulectl.services.ledger import TemplateVersionLedger
from tests.conftest import FakeProvider, create_template


@pytest.mark.usefixtures("_isolated_workspace")
class TestSyncCommand:
    def test_sync_after_version_bump(
        self, cli_runner: CliRunner, workspace: Workspace, provider: FakeProvider
    ) -> None:
        tpl = create_template(workspace, "Geo", "geo")
        provider.seed("z1", "r1", "geo", description="R001@1.0.0-Geo")
        provider.seed("z2", "r2", "geo", description="R001@1.0.0-Geo")
        TemplateVersionLedger(workspace).update(tpl.id, {"expression": "geo v2"})
        cli_runner.invoke(cli, ["refresh"])

        result = cli_runner.invoke(cli, ["sync", "R001"])

        assert result.exit_code == 0
        assert "synced 2/2 zones" in result.stderr
        assert "successful: 2" in result.stdout
        check = cli_runner.invoke(cli, ["--json", "outdated", "R001"])
        assert json.loads(check.stdout)["data"]["affected"] == []

    def test_unknown_template(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["sync", "R404"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.stderr

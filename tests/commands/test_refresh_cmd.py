"""Tests for the refresh command."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from rulectl.cli import cli
from rulectl.errors import ProviderError
from tests.conftest import FakeProvider


@pytest.mark.usefixtures("_isolated_workspace")
class TestRefreshCommand:
    def test_all_zones_reports_progress_on_stderr(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["refresh"])
        assert result.exit_code == 0
        assert "analysed 2/2 zones" in result.stderr
        assert "alpha.example" in result.stdout

    def test_json_mode_is_silent_on_stderr(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "refresh", "z1", "z2"])
        assert result.exit_code == 0
        assert "analysed" not in result.stderr
        assert json.loads(result.stdout)["data"]["analyzed"] == 2

    def test_single_zone(self, cli_runner: CliRunner, provider: FakeProvider) -> None:
        provider.seed("z1", "r1", "ip.src eq 1.1.1.1")
        result = cli_runner.invoke(cli, ["--json", "refresh", "z1"])
        data = json.loads(result.stdout)
        assert data["op"] == "refresh_zone"
        assert data["data"]["status"]["custom_rules"][0]["provider_rule_id"] == "r1"

    def test_single_zone_provider_error(
        self, cli_runner: CliRunner, provider: FakeProvider
    ) -> None:
        provider.fail_reads["z1"] = ProviderError("HTTP 403", status_code=403)
        result = cli_runner.invoke(cli, ["refresh", "z1"])
        assert result.exit_code == 1
        assert "PROVIDER_ERROR" in result.stderr

    def test_bulk_failure_is_a_warning(
        self, cli_runner: CliRunner, provider: FakeProvider
    ) -> None:
        provider.fail_reads["z2"] = ProviderError("HTTP 500", status_code=500)
        result = cli_runner.invoke(cli, ["refresh"])
        assert result.exit_code == 0
        assert "WARNING: Zone beta.example could not be analysed" in result.stderr

    def test_summary(self, cli_runner: CliRunner) -> None:
        cli_runner.invoke(cli, ["refresh"])
        result = cli_runner.invoke(cli, ["--json", "refresh", "--summary"])
        data = json.loads(result.stdout)["data"]
        assert data["total_domains"] == 2

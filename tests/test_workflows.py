"""End-to-end workflow: template lifecycle across zones through the CLI."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from rulectl.cli import cli
from tests.conftest import FakeProvider

GEO = 'ip.geoip.country eq "CN"'


def _json(cli_runner: CliRunner, *args: str) -> dict:
    result = cli_runner.invoke(cli, ["--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["data"]


@pytest.mark.usefixtures("_isolated_workspace")
class TestVersionedRollout:
    def test_create_apply_bump_sync(self, cli_runner: CliRunner, provider: FakeProvider) -> None:
        provider.add_zone("z3", "gamma.example")

        created = _json(
            cli_runner, "template", "create", "--name", "Geo", "--expression", GEO,
            "--action", "block", "--exclude", "gamma.example",
        )
        assert created["template"]["friendly_id"] == "R001"

        applied = _json(cli_runner, "apply", "R001", "z1", "z2", "z3")
        assert applied["summary"]["successful"] == 2
        assert "excluded" in applied["results"][2]["error"]

        bumped = _json(
            cli_runner, "template", "update", "R001", "--expression", 'ip.geoip.country in {"CN"}'
        )
        assert bumped["template"]["version"] == "1.1.0"

        _json(cli_runner, "refresh")
        outdated = _json(cli_runner, "outdated", "R001")
        assert sorted(a["zone_id"] for a in outdated["affected"]) == ["z1", "z2"]
        assert all(a["reason"] == "outdated" for a in outdated["affected"])

        synced = _json(cli_runner, "sync", "R001")
        assert synced["successful"] == 2
        assert _json(cli_runner, "outdated", "R001")["affected"] == []

        for zone in ("z1", "z2"):
            descriptions = [r.description for r in provider.rules[zone]]
            assert descriptions == ["R001@1.1.0-Geo"]

        history = _json(cli_runner, "history")
        assert history["total"] == 1

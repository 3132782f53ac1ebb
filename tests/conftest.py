"""Shared pytest fixtures and test helpers for rulectl tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from rulectl.config.settings import RulectlSettings
from rulectl.domain.models import ProviderRule, RuleTemplate, Zone
from rulectl.errors import ProviderError
from rulectl.infrastructure.workspace import Workspace

# No pacing in tests.
NO_DELAY_TOML = """\
[propagation]
batch_delay_seconds = 0
[analysis]
batch_delay_seconds = 0
[discovery]
batch_delay_seconds = 0
"""


class FakeProvider:
    """In-memory provider: zones, their rules, and recorded mutations."""

    def __init__(self, zones: dict[str, str] | None = None) -> None:
        self.zones: dict[str, str] = dict(zones or {})
        self.rules: dict[str, list[ProviderRule]] = {z: [] for z in self.zones}
        self.added: list[tuple[str, dict[str, Any]]] = []
        self.removed: list[tuple[str, str]] = []
        self.fail_reads: dict[str, ProviderError] = {}
        self.fail_adds: dict[str, ProviderError] = {}
        self.fail_removes: set[str] = set()
        self.list_calls = 0

    def add_zone(self, zone_id: str, name: str) -> None:
        self.zones[zone_id] = name
        self.rules.setdefault(zone_id, [])

    def seed(
        self,
        zone_id: str,
        rule_id: str,
        expression: str,
        *,
        action: str = "block",
        description: str | None = None,
        last_updated: str | None = None,
    ) -> ProviderRule:
        rule = ProviderRule(
            id=rule_id,
            expression=expression,
            action=action,
            description=description,
            ruleset_id=f"rs-{zone_id}",
            last_updated=last_updated,
        )
        self.rules.setdefault(zone_id, []).append(rule)
        return rule

    async def list_zones(self, page: int = 1, per_page: int = 50) -> tuple[list[Zone], int]:
        self.list_calls += 1
        items = [Zone(id=z, name=n) for z, n in self.zones.items()]
        total_pages = max(1, -(-len(items) // per_page))
        start = (page - 1) * per_page
        return items[start : start + per_page], total_pages

    async def get_security_rules(self, zone_id: str) -> list[ProviderRule]:
        if zone_id in self.fail_reads:
            raise self.fail_reads[zone_id]
        return list(self.rules.get(zone_id, []))

    async def add_rule(self, zone_id: str, rule: dict[str, Any]) -> dict[str, Any]:
        if zone_id in self.fail_adds:
            raise self.fail_adds[zone_id]
        self.added.append((zone_id, rule))
        self.rules.setdefault(zone_id, []).append(
            ProviderRule.model_validate({**rule, "ruleset_id": f"rs-{zone_id}"})
        )
        return {"id": f"rs-{zone_id}", "rules": [r.model_dump() for r in self.rules[zone_id]]}

    async def remove_rule(self, zone_id: str, rule_id: str) -> None:
        if rule_id in self.fail_removes:
            msg = f"cannot remove {rule_id}"
            raise ProviderError(msg, status_code=500)
        before = self.rules.get(zone_id, [])
        after = [r for r in before if r.id != rule_id]
        if len(after) == len(before):
            msg = f"Rule {rule_id} not found in zone {zone_id}"
            raise ProviderError(msg, status_code=404)
        self.rules[zone_id] = after
        self.removed.append((zone_id, rule_id))


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Temporary workspace with a rulectl.toml that disables batch delays."""
    (tmp_path / "rulectl.toml").write_text(NO_DELAY_TOML, encoding="utf-8")
    return tmp_path


@pytest.fixture
def settings(workspace_root: Path) -> RulectlSettings:
    return RulectlSettings.from_cli(workspace_root=workspace_root)


@pytest.fixture
def provider() -> FakeProvider:
    """Two zones, no rules."""
    return FakeProvider({"z1": "alpha.example", "z2": "beta.example"})


@pytest.fixture
def workspace(settings: RulectlSettings, provider: FakeProvider) -> Workspace:
    return Workspace(settings, provider=provider)


@pytest.fixture
def _isolated_workspace(
    workspace_root: Path, provider: FakeProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Run CLI commands inside a temp workspace backed by the fake provider.

    Use via ``@pytest.mark.usefixtures("_isolated_workspace")``.
    """
    monkeypatch.chdir(workspace_root)
    monkeypatch.delenv("RULECTL_CONFIG", raising=False)
    monkeypatch.setattr(Workspace, "provider", property(lambda self: provider))


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def create_template(
    workspace: Workspace, name: str, expression: str, **fields: Any
) -> RuleTemplate:
    """Create a template via the ledger, asserting success."""
    from rulectl.services.ledger import TemplateVersionLedger

    fields.setdefault("action", "block")
    result = TemplateVersionLedger(workspace).create(
        {"name": name, "expression": expression, **fields}
    )
    assert result.ok, result.error
    return RuleTemplate.model_validate(result.data["template"])

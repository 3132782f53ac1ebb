"""Tests for AutoDiscoveryImporter."""

from __future__ import annotations

import pytest

from rulectl.domain.types import RuleAction
from rulectl.errors import ProviderError
from rulectl.infrastructure.workspace import Workspace
from rulectl.services.discovery import AUTO_DISCOVERED_TAG, AutoDiscoveryImporter, template_action
from rulectl.services.ledger import TemplateVersionLedger
from tests.conftest import FakeProvider, create_template

SQLI = 'http.request.uri.query contains "union select"'
XSS = 'http.request.uri contains "<script"'


class TestTemplateAction:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("block", RuleAction.BLOCK),
            ("managed_challenge", RuleAction.CHALLENGE),
            ("JS_CHALLENGE", RuleAction.CHALLENGE),
            ("log", RuleAction.LOG),
            ("redirect", None),
        ],
    )
    def test_mapping(self, raw: str, expected: RuleAction | None) -> None:
        assert template_action(raw) == expected


class TestRun:
    @pytest.mark.asyncio
    async def test_shared_expression_imported_once(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        provider.seed("z1", "a", SQLI)
        provider.seed("z2", "b", SQLI)
        provider.seed("z2", "c", XSS)

        result = await AutoDiscoveryImporter(workspace).run()

        assert result.ok
        assert result.op == "auto_discovery"
        assert result.data["imported"] == 2
        assert result.data["zones_analyzed"] == 2
        templates = TemplateVersionLedger(workspace).templates()
        assert sorted(t.expression for t in templates) == sorted([SQLI, XSS])
        sqli = next(t for t in templates if t.expression == SQLI)
        assert sqli.tags == [AUTO_DISCOVERED_TAG, "sql_injection"]
        assert sqli.version == "1.0.0"

    @pytest.mark.asyncio
    async def test_rerun_imports_nothing(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        provider.seed("z1", "a", SQLI)
        importer = AutoDiscoveryImporter(workspace)
        await importer.run()
        second = await importer.run()
        assert second.data["imported"] == 0
        assert len(TemplateVersionLedger(workspace).templates()) == 1

    @pytest.mark.asyncio
    async def test_weak_candidate_reported_not_created(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        provider.seed("z1", "weak", "ip.src eq 203.0.113.9", action="block")

        result = await AutoDiscoveryImporter(workspace).run()

        assert result.data["imported"] == 0
        assert result.data["candidates"][0]["source_rule_id"] == "weak"
        assert result.data["candidates"][0]["confidence"] == 0.5
        assert TemplateVersionLedger(workspace).templates() == []

    @pytest.mark.asyncio
    async def test_non_security_rule_skipped(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        provider.seed("z1", "plain", "http.host eq \"a\"", action="log")
        result = await AutoDiscoveryImporter(workspace).run()
        assert result.data["skipped"] == 1
        assert result.data["candidates"] == []

    @pytest.mark.asyncio
    async def test_name_collision_gets_suffix(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        create_template(workspace, "SQL Injection Protection", "something else entirely")
        provider.seed("z1", "a", SQLI)

        result = await AutoDiscoveryImporter(workspace).run()

        assert result.data["imported"] == 1
        assert result.data["templates"][0]["name"] == "SQL Injection Protection (R002)"

    @pytest.mark.asyncio
    async def test_unreadable_zone_reported(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        provider.fail_reads["z2"] = ProviderError("forbidden", status_code=403)
        provider.seed("z1", "a", SQLI)

        result = await AutoDiscoveryImporter(workspace).run()

        assert result.ok
        assert result.data["failed_zones"] == [{"zone_id": "z2", "error": "forbidden"}]
        assert result.data["zones_analyzed"] == 1

    @pytest.mark.asyncio
    async def test_newer_remote_edit_reconciled(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        tpl = create_template(workspace, "Geo", 'ip.geoip.country eq "CN"')
        provider.seed(
            "z1",
            "r1",
            'ip.geoip.country in {"CN" "RU"}',
            description="R001@1.0.0-Geo",
            last_updated="2999-01-01T00:00:00Z",
        )

        result = await AutoDiscoveryImporter(workspace).run()

        assert result.data["updated"] == 1
        assert result.data["imported"] == 0
        assert result.data["drifted"][0]["remote_newer"] is True
        refreshed = TemplateVersionLedger(workspace).find(tpl.id)
        assert refreshed is not None
        assert refreshed.expression == 'ip.geoip.country in {"CN" "RU"}'
        assert refreshed.version == "1.1.0"

    @pytest.mark.asyncio
    async def test_older_remote_edit_only_reported(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        create_template(workspace, "Geo", 'ip.geoip.country eq "CN"')
        provider.seed(
            "z1",
            "r1",
            'ip.geoip.country eq "RU"',
            description="R001@1.0.0-Geo",
            last_updated="2000-01-01T00:00:00Z",
        )

        result = await AutoDiscoveryImporter(workspace).run()

        assert result.data["updated"] == 0
        assert result.data["drifted"][0]["remote_newer"] is False
        assert TemplateVersionLedger(workspace).templates()[0].version == "1.0.0"

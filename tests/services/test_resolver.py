"""Tests for OutdatedDomainResolver."""

from __future__ import annotations

import pytest

from rulectl.errors import ProviderError
from rulectl.infrastructure.workspace import Workspace
from rulectl.services.ledger import TemplateVersionLedger
from rulectl.services.resolver import OutdatedDomainResolver
from rulectl.services.state_index import DomainRuleStateIndex
from tests.conftest import FakeProvider, create_template


async def _bump_and_snapshot(workspace: Workspace, provider: FakeProvider) -> None:
    """R001 at 1.1.0; z1 runs 1.0.0, z2 has nothing."""
    tpl = create_template(workspace, "Geo", "geo")
    provider.seed("z1", "r1", "geo", description="R001@1.0.0-Geo")
    TemplateVersionLedger(workspace).update(tpl.id, {"expression": "geo v2"})
    await DomainRuleStateIndex(workspace).refresh_many()


class TestFindOutdated:
    @pytest.mark.asyncio
    async def test_missing_and_outdated(self, workspace: Workspace, provider: FakeProvider) -> None:
        await _bump_and_snapshot(workspace, provider)

        result = OutdatedDomainResolver(workspace).find_outdated("R001")

        assert result.ok
        assert result.data["version"] == "1.1.0"
        assert [(a["zone_id"], a["reason"], a["action"]) for a in result.data["affected"]] == [
            ("z1", "outdated", "update"),
            ("z2", "missing", "add"),
        ]
        assert result.data["affected"][0]["current_version"] == "1.0.0"
        assert (result.data["missing"], result.data["outdated"]) == (1, 1)
        assert result.data["domains_checked"] == 2

    def test_no_snapshots_warns(self, workspace: Workspace) -> None:
        create_template(workspace, "Geo", "geo")
        result = OutdatedDomainResolver(workspace).find_outdated("R001")
        assert result.ok
        assert result.data["affected"] == []
        assert result.warnings

    def test_unknown_template(self, workspace: Workspace) -> None:
        result = OutdatedDomainResolver(workspace).find_outdated("R404")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"


class TestSyncOutdated:
    @pytest.mark.asyncio
    async def test_brings_every_zone_current(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        await _bump_and_snapshot(workspace, provider)
        seen: list[tuple[int, int]] = []

        result = await OutdatedDomainResolver(workspace).sync_outdated(
            "R001", progress=lambda done, total: seen.append((done, total))
        )

        assert result.ok
        assert result.data["successful"] == 2
        assert result.data["refreshed"] == 2
        assert seen == [(1, 2), (2, 2)]
        assert provider.removed == [("z1", "r1")]
        after = OutdatedDomainResolver(workspace).find_outdated("R001")
        assert after.data["affected"] == []

    @pytest.mark.asyncio
    async def test_partial_failure_reported(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        await _bump_and_snapshot(workspace, provider)
        provider.fail_adds["z2"] = ProviderError("denied", status_code=403)

        result = await OutdatedDomainResolver(workspace).sync_outdated("R001")

        assert result.ok
        assert result.data["successful"] == 1
        assert result.data["failed"] == [{"zone_id": "z2", "error": "denied"}]
        assert any("denied" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_unanalyzed_zone_is_left_alone(
        self, workspace: Workspace, provider: FakeProvider
    ) -> None:
        provider.fail_reads["z2"] = ProviderError("HTTP 503", status_code=503)
        await _bump_and_snapshot(workspace, provider)

        report = OutdatedDomainResolver(workspace).find_outdated("R001")
        assert [a["zone_id"] for a in report.data["affected"]] == ["z1"]
        assert report.data["unanalyzed"] == ["beta.example"]
        assert any("last analysis failed" in w for w in report.warnings)

        result = await OutdatedDomainResolver(workspace).sync_outdated("R001")
        assert result.ok
        assert [zone for zone, _ in provider.added] == ["z1"]

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, workspace: Workspace, provider: FakeProvider) -> None:
        create_template(workspace, "Geo", "geo")
        provider.seed("z1", "r1", "geo", description="R001@1.0.0-Geo")
        provider.seed("z2", "r2", "geo", description="R001@1.0.0-Geo")
        await DomainRuleStateIndex(workspace).refresh_many()

        result = await OutdatedDomainResolver(workspace).sync_outdated("R001")

        assert result.ok
        assert result.data["affected"] == []
        assert provider.added == []

    @pytest.mark.asyncio
    async def test_disabled_template_refused(self, workspace: Workspace) -> None:
        tpl = create_template(workspace, "Geo", "geo")
        TemplateVersionLedger(workspace).update(tpl.id, {"enabled": False})
        result = await OutdatedDomainResolver(workspace).sync_outdated("R001")
        assert result.error is not None
        assert result.error.code == "TEMPLATE_DISABLED"

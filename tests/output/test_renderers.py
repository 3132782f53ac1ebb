"""Tests for operation-specific Rich renderers."""

from rulectl.output.renderers import render_quiet, render_result
from rulectl.services.result import ServiceError, ServiceResult

# ── Helpers ───────────────────────────────────────────────────────────


def _ok(op: str, **data: object) -> ServiceResult:
    return ServiceResult(ok=True, op=op, data=dict(data))


def _err(op: str, code: str, message: str, **detail: object) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code=code, message=message, detail=dict(detail)),
    )


def _tpl(fid: str = "R001", **extra: object) -> dict[str, object]:
    return {
        "id": "t-1",
        "friendly_id": fid,
        "name": "Geo Block",
        "version": "1.2.0",
        "action": "block",
        "enabled": True,
        "expression": 'ip.geoip.country eq "CN"',
        **extra,
    }


# ── Error rendering ──────────────────────────────────────────────────


class TestErrorRenderer:
    def test_basic_error(self) -> None:
        output = render_result(_err("create_template", "VALIDATION_FAILED", "name is required"))
        assert "ERROR" in output
        assert "create_template" in output
        assert "[VALIDATION_FAILED]" in output
        assert "name is required" in output

    def test_verbose_shows_detail(self) -> None:
        output = render_result(_err("refresh_zone", "PROVIDER_ERROR", "Bad", status_code=429),
                               verbose=True)
        assert "detail" in output
        assert "status_code: 429" in output

    def test_no_error_object(self) -> None:
        assert "Unknown error" in render_result(ServiceResult(ok=False, op="test"))


# ── Templates ────────────────────────────────────────────────────────


class TestTemplateRenderers:
    def test_get_shows_expression(self) -> None:
        output = render_result(_ok("get_template", template=_tpl()))
        assert "R001" in output
        assert "1.2.0" in output
        assert 'ip.geoip.country eq "CN"' in output

    def test_update_shows_version_change(self) -> None:
        result = _ok(
            "update_template",
            template=_tpl(),
            version_changed=True,
            previous_version="1.1.0",
            fields_changed=["expression"],
        )
        output = render_result(result)
        assert "previous_version: 1.1.0" in output
        assert "expression" in output

    def test_list_table(self) -> None:
        result = _ok("list_templates", templates=[_tpl("R001"), _tpl("R002", enabled=False)])
        output = render_result(result)
        assert "R001" in output
        assert "R002" in output
        assert "no" in output

    def test_empty_list(self) -> None:
        assert "No templates." in render_result(_ok("list_templates", templates=[], count=0))

    def test_usage(self) -> None:
        result = _ok("template_usage", friendly_id="R001", in_use=True, domain_count=1,
                     domains=["alpha.example"])
        output = render_result(result)
        assert "in_use: True" in output
        assert "- alpha.example" in output


# ── Snapshots and propagation ────────────────────────────────────────


class TestOperationRenderers:
    def test_refresh_many(self) -> None:
        status = {
            "zone_id": "z1",
            "domain_name": "alpha.example",
            "applied_rules": [{"friendly_id": "R001", "version": "1.0.0", "status": "outdated"}],
            "custom_rules": [{}],
            "last_analyzed": "2024-01-01",
            "analysis": {"errors": []},
        }
        result = _ok("refresh_domains", analyzed=1, reused=0, failed=[],
                     domain_statuses=[status])
        output = render_result(result)
        assert "alpha.example" in output
        assert "R001@1.0.0 (outdated)" in output

    def test_outdated(self) -> None:
        affected = [{"zone_id": "z2", "domain_name": "beta.example", "current_version": None,
                     "reason": "missing", "action": "add"}]
        result = _ok("find_outdated", friendly_id="R001", version="1.1.0", missing=1,
                     outdated=0, affected=affected)
        output = render_result(result)
        assert "beta.example" in output
        assert "missing" in output

    def test_apply_preview(self) -> None:
        results = [
            {"domain_name": "alpha.example", "success": True, "applied_rule_id": "preview-mode",
             "conflicts": []},
            {"domain_name": "beta.example", "success": False,
             "error": "Skipped: 1 conflicting rule(s) found", "conflicts": [{}]},
        ]
        result = _ok("apply_template", friendly_id="R001", version="1.0.0", preview=True,
                     summary={"total": 2, "successful": 1, "failed": 1, "conflicts": 1},
                     results=results)
        output = render_result(result)
        assert "preview, no changes made" in output
        assert "successful=1" in output
        assert "Skipped: 1 conflicting rule(s) found" in output

    def test_sync_lists_failures(self) -> None:
        result = _ok("sync_outdated", friendly_id="R001", version="1.1.0", affected=[{}, {}],
                     successful=1, failed=[{"zone_id": "z2", "error": "denied"}], refreshed=2)
        output = render_result(result)
        assert "affected: 2" in output
        assert "z2: denied" in output

    def test_discovery_candidates(self) -> None:
        cand = {"suggested_name": "Custom Security Rule", "category": "CUSTOM_SECURITY",
                "confidence": 0.5, "zone_id": "z1"}
        result = _ok("auto_discovery", imported=0, updated=0, skipped=1, zones_analyzed=1,
                     templates=[], candidates=[cand])
        output = render_result(result)
        assert "Candidates for review" in output
        assert "0.50" in output

    def test_history_truncation_note(self) -> None:
        entry = {"timestamp": "2024-01-01", "template_name": "Geo", "conflict_resolution": "skip",
                 "summary": {"total": 2, "successful": 2, "failed": 0, "conflicts": 0}}
        result = _ok("application_history", entries=[entry], count=1, total=5)
        output = render_result(result)
        assert "Geo" in output
        assert "showing 1 of 5" in output

    def test_unknown_op_uses_generic(self) -> None:
        output = render_result(_ok("mystery", answer=42))
        assert "OK" in output
        assert "answer: 42" in output

    def test_verbose_renders_telemetry(self) -> None:
        result = ServiceResult(
            ok=True,
            op="mystery",
            meta={"telemetry": {"name": "Svc.run", "duration_ms": 1.5,
                                "children": [{"name": "inner", "duration_ms": 0.5}]}},
        )
        output = render_result(result, verbose=True)
        assert "Svc.run" in output
        assert "inner" in output


# ── Quiet mode ───────────────────────────────────────────────────────


class TestQuiet:
    def test_list_prints_friendly_ids(self) -> None:
        result = _ok("list_templates", templates=[_tpl("R001"), _tpl("R002")])
        assert render_quiet(result) == "R001\nR002"

    def test_single_template(self) -> None:
        assert render_quiet(_ok("create_template", template=_tpl("R007"))) == "R007"

    def test_affected_zone_ids(self) -> None:
        result = _ok("find_outdated", affected=[{"zone_id": "z1"}, {"zone_id": "z2"}])
        assert render_quiet(result) == "z1\nz2"

    def test_fallback_and_error(self) -> None:
        assert render_quiet(_ok("snapshot_summary", total_domains=0)) == "OK: snapshot_summary"
        assert render_quiet(_err("x", "NOT_FOUND", "gone")) == "ERROR: x: gone"

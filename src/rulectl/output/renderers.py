"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO). Renderers are
dispatched by ``result.op`` in :func:`render_result`; unknown ops fall
through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from rulectl.output.console import create_console, get_output, style_for_action

if TYPE_CHECKING:
    from rich.console import Console

    from rulectl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Minimal output for ``--quiet``: identifiers, one per line."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    d = result.data
    for key in ("templates", "affected", "results", "entries", "domain_statuses"):
        items = d.get(key)
        if isinstance(items, list) and items:
            return "\n".join(_extract_id(item) for item in items if _extract_id(item))
    if isinstance(d.get("template"), dict):
        return str(d["template"].get("friendly_id", ""))
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("friendly_id", "zone_id", "id"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="rule.ok")
    op = Text(f"  {result.op}", style="rule.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="rule.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="rule.id")
    elif key == "version" or key.endswith("_version"):
        v = Text(str(value), style="rule.version")
    elif key == "name":
        v = Text(str(value), style="rule.name")
    elif key == "action":
        v = Text(str(value), style=style_for_action(str(value)))
    elif isinstance(value, (dict, list)):
        v = Text(_json.dumps(value, separators=(",", ":")))
    else:
        v = Text(str(value))
    console.print(k, v, sep="", end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including the telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _summary_line(console: Console, summary: dict[str, Any]) -> None:
    console.print(
        f"  total={summary.get('total', 0)}  "
        f"[rule.ok]successful={summary.get('successful', 0)}[/rule.ok]  "
        f"[rule.error]failed={summary.get('failed', 0)}[/rule.error]  "
        f"[rule.warning]conflicts={summary.get('conflicts', 0)}[/rule.warning]"
    )


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="rule.error"),
        Text(f"  {result.op}{code}", style="rule.op"),
        Text(": "),
        msg,
        sep="",
    )

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Template renderers ────────────────────────────────────────────────


def _render_template(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render get/create/update/delete results for a single template."""
    _status_line(console, result)
    tpl = result.data.get("template", {})
    for key in ("friendly_id", "id", "name", "version", "action", "enabled"):
        if key in tpl:
            _field(console, key, tpl[key])
    if "version_changed" in result.data:
        _field(console, "version_changed", result.data["version_changed"])
        if result.data["version_changed"]:
            _field(console, "previous_version", result.data.get("previous_version"))
    if result.data.get("fields_changed"):
        _field(console, "fields_changed", result.data["fields_changed"])
    if result.op == "get_template" or verbose:
        _field(console, "expression", tpl.get("expression", ""))
        for key in ("description", "tags", "excluded_domains", "updated_at"):
            if tpl.get(key):
                _field(console, key, tpl[key])
    if verbose:
        _render_meta(console, result)


def _render_template_table(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    templates = result.data.get("templates", [])
    if not templates:
        console.print("[dim]No templates.[/dim]")
        return

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="rule.id", no_wrap=True)
    table.add_column("Name", style="rule.name")
    table.add_column("Version", style="rule.version")
    table.add_column("Action")
    table.add_column("Enabled")
    if verbose:
        table.add_column("Expression", overflow="fold")

    for tpl in templates:
        action = str(tpl.get("action", ""))
        row: list[Any] = [
            str(tpl.get("friendly_id", "")),
            str(tpl.get("name", "")),
            str(tpl.get("version", "")),
            Text(action, style=style_for_action(action)),
            "yes" if tpl.get("enabled", True) else "no",
        ]
        if verbose:
            row.append(str(tpl.get("expression", "")))
        table.add_row(*row)
    console.print(table)
    if verbose:
        _render_meta(console, result)


def _render_usage(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "friendly_id", d.get("friendly_id", ""))
    _field(console, "in_use", d.get("in_use", False))
    _field(console, "domain_count", d.get("domain_count", 0))
    for domain in d.get("domains", []):
        console.print(f"    - {domain}")


# ── Snapshot renderers ────────────────────────────────────────────────


def _render_refresh(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    if "status" in d:
        statuses = [d["status"]]
    else:
        statuses = d.get("domain_statuses", [])
        _field(console, "analyzed", d.get("analyzed", 0))
        _field(console, "reused", d.get("reused", 0))
        _field(console, "failed", len(d.get("failed", [])))

    if statuses:
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Domain", style="rule.name")
        table.add_column("Templates")
        table.add_column("Custom", justify="right")
        table.add_column("Analyzed", style="dim")
        for status in statuses:
            applied = ", ".join(
                f"{r['friendly_id']}@{r['version']}"
                + ("" if r.get("status") == "active" else f" ({r.get('status')})")
                for r in status.get("applied_rules", [])
            )
            errors = status.get("analysis", {}).get("errors") or []
            table.add_row(
                str(status.get("domain_name", "")),
                applied or ("[rule.error]error[/rule.error]" if errors else "-"),
                str(len(status.get("custom_rules", []))),
                str(status.get("last_analyzed", "")),
            )
        console.print(table)
    if verbose:
        _render_meta(console, result)


def _render_outdated(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "friendly_id", d.get("friendly_id", ""))
    _field(console, "version", d.get("version", ""))
    _field(console, "missing", d.get("missing", 0))
    _field(console, "outdated", d.get("outdated", 0))

    affected = d.get("affected", [])
    if affected:
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Zone", style="rule.id", no_wrap=True)
        table.add_column("Domain", style="rule.name")
        table.add_column("Current", style="rule.version")
        table.add_column("Reason")
        table.add_column("Action")
        for item in affected:
            table.add_row(
                str(item.get("zone_id", "")),
                str(item.get("domain_name", "")),
                str(item.get("current_version") or "-"),
                str(item.get("reason", "")),
                str(item.get("action", "")),
            )
        console.print(table)
    if verbose:
        _render_meta(console, result)


# ── Propagation renderers ─────────────────────────────────────────────


def _render_apply(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    title = f"  {d.get('friendly_id', '')}@{d.get('version', '')}"
    if d.get("preview"):
        title += "  [rule.warning](preview, no changes made)[/rule.warning]"
    console.print(title)
    _summary_line(console, d.get("summary", {}))

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Domain", style="rule.name")
    table.add_column("Result")
    table.add_column("Conflicts", justify="right")
    table.add_column("Detail", overflow="fold")
    for item in d.get("results", []):
        ok = item.get("success")
        table.add_row(
            str(item.get("domain_name", "")),
            "[rule.ok]applied[/rule.ok]" if ok else "[rule.error]failed[/rule.error]",
            str(len(item.get("conflicts", []))),
            str(item.get("applied_rule_id") if ok else item.get("error", "")),
        )
    console.print(table)
    if verbose:
        _render_meta(console, result)


def _render_sync(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "friendly_id", d.get("friendly_id", ""))
    _field(console, "version", d.get("version", ""))
    if "affected" in d:
        _field(console, "affected", len(d["affected"]))
    _field(console, "successful", d.get("successful", 0))
    failed = d.get("failed", [])
    _field(console, "failed", len(failed))
    if "refreshed" in d:
        _field(console, "refreshed", d["refreshed"])
    for item in failed:
        console.print(f"  [rule.error]failed[/rule.error] {item['zone_id']}: {item['error']}")
    if verbose:
        _render_meta(console, result)


def _render_discovery(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    for key in ("imported", "updated", "skipped", "zones_analyzed"):
        _field(console, key, d.get(key, 0))

    created = d.get("templates", [])
    if created:
        console.print()
        console.print(Text("  Imported templates", style="rule.name"))
        for tpl in created:
            console.print(f"    {tpl['friendly_id']}  {tpl['name']}  ({tpl['action']})")

    candidates = d.get("candidates", [])
    if candidates:
        console.print()
        console.print(Text("  Candidates for review", style="rule.warning"))
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Name", style="rule.name")
        table.add_column("Category")
        table.add_column("Confidence", style="rule.score", justify="right")
        table.add_column("Zone", style="rule.id")
        for cand in candidates:
            table.add_row(
                str(cand.get("suggested_name", "")),
                str(cand.get("category", "")),
                f"{float(cand.get('confidence', 0.0)):.2f}",
                str(cand.get("zone_id", "")),
            )
        console.print(table)
    if verbose:
        _render_meta(console, result)


def _render_history(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    entries = result.data.get("entries", [])
    if not entries:
        console.print("[dim]No propagation history.[/dim]")
        return

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Template", style="rule.name")
    table.add_column("Resolution")
    table.add_column("Total", justify="right")
    table.add_column("OK", justify="right", style="rule.ok")
    table.add_column("Failed", justify="right", style="rule.error")
    table.add_column("Conflicts", justify="right", style="rule.warning")
    for entry in entries:
        summary = entry.get("summary", {})
        table.add_row(
            str(entry.get("timestamp", "")),
            str(entry.get("template_name", "")),
            str(entry.get("conflict_resolution", "")),
            str(summary.get("total", 0)),
            str(summary.get("successful", 0)),
            str(summary.get("failed", 0)),
            str(summary.get("conflicts", 0)),
        )
    console.print(table)
    total = result.data.get("total", len(entries))
    if total > len(entries):
        console.print(f"[dim]  showing {len(entries)} of {total}[/dim]")


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    # Templates
    "list_templates": _render_template_table,
    "get_template": _render_template,
    "create_template": _render_template,
    "update_template": _render_template,
    "delete_template": _render_template,
    "template_usage": _render_usage,
    # Snapshots
    "refresh_zone": _render_refresh,
    "refresh_domains": _render_refresh,
    "snapshot_summary": _render_generic,
    "find_outdated": _render_outdated,
    # Propagation
    "apply_template": _render_apply,
    "resync_template": _render_sync,
    "sync_outdated": _render_sync,
    "auto_discovery": _render_discovery,
    "application_history": _render_history,
}

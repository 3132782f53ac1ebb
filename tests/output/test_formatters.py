"""Tests for output mode selection."""

import json

from rulectl.output.formatters import OutputSettings, format_result
from rulectl.services.result import ServiceResult


def _result() -> ServiceResult:
    return ServiceResult(
        ok=True,
        op="create_template",
        data={"template": {"friendly_id": "R001", "name": "Geo", "version": "1.0.0"}},
    )


class TestFormatResult:
    def test_json_is_verbatim(self) -> None:
        output = format_result(_result(), settings=OutputSettings(json_output=True))
        parsed = json.loads(output)
        assert parsed["op"] == "create_template"
        assert parsed["data"]["template"]["friendly_id"] == "R001"

    def test_json_beats_quiet(self) -> None:
        output = format_result(_result(), settings=OutputSettings(json_output=True, quiet=True))
        assert output.startswith("{")

    def test_quiet(self) -> None:
        assert format_result(_result(), settings=OutputSettings(quiet=True)) == "R001"

    def test_default_is_human(self) -> None:
        output = format_result(_result())
        assert "OK" in output
        assert "friendly_id: R001" in output

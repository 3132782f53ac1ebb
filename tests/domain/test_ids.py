"""Tests for friendlyId generation and the rule-name convention."""

from __future__ import annotations

from rulectl.domain.ids import (
    format_rule_name,
    is_valid_friendly_id,
    new_rule_id,
    next_friendly_id,
    parse_rule_name,
)


class TestFriendlyIds:
    def test_first(self) -> None:
        assert next_friendly_id([]) == "R001"

    def test_fills_lowest_gap(self) -> None:
        assert next_friendly_id(["R001", "R003", "R004"]) == "R002"

    def test_appends_after_contiguous(self) -> None:
        assert next_friendly_id(["R002", "R001", "R003"]) == "R004"

    def test_ignores_malformed(self) -> None:
        assert next_friendly_id(["R1", "X001", "R0001"]) == "R001"

    def test_validity(self) -> None:
        assert is_valid_friendly_id("R042")
        assert not is_valid_friendly_id("R42")
        assert not is_valid_friendly_id("r042")


class TestRuleNames:
    def test_format_with_description(self) -> None:
        assert (
            format_rule_name("R003", "1.2.0", "Block Bots", "Known scrapers")
            == "R003@1.2.0-Block Bots - Known scrapers"
        )

    def test_format_without_description(self) -> None:
        assert format_rule_name("R003", "1.2.0", "Block Bots") == "R003@1.2.0-Block Bots"

    def test_parse_versioned(self) -> None:
        parsed = parse_rule_name("R003@1.2.0-Block Bots - Known scrapers")
        assert parsed is not None
        assert parsed.friendly_id == "R003"
        assert parsed.version == "1.2.0"
        assert parsed.name == "Block Bots - Known scrapers"

    def test_parse_legacy(self) -> None:
        parsed = parse_rule_name("R001-Geo Fence")
        assert parsed is not None
        assert parsed.friendly_id == "R001"
        assert parsed.version is None
        assert parsed.name == "Geo Fence"

    def test_parse_round_trips_identity(self) -> None:
        parsed = parse_rule_name(format_rule_name("R010", "1.10.0", "X"))
        assert parsed is not None
        assert (parsed.friendly_id, parsed.version) == ("R010", "1.10.0")

    def test_parse_ad_hoc(self) -> None:
        assert parse_rule_name("Block wordpress login") is None
        assert parse_rule_name("") is None
        assert parse_rule_name(None) is None

    def test_rule_ids_are_unique_hex(self) -> None:
        a, b = new_rule_id(), new_rule_id()
        assert a != b
        assert len(a) == 32
        int(a, 16)

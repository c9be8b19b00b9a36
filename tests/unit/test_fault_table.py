"""Unit tests for fault rules and the fault table."""

import json

import pytest
from pydantic import ValidationError

from mockhttpd.models.fault import FaultKind, FaultRule, MatchEnum
from mockhttpd.services.fault_table import (
    FaultTable,
    load_fault_rules,
    parse_fault_option,
)


@pytest.mark.unit
class TestFaultRule:
    """Test FaultRule matching and validation."""

    def test_substring_match(self):
        rule = FaultRule(pattern="pkg-1.0", kind=FaultKind.TRUNCATE)

        assert rule.matches("pkg-1.0.tgz")
        assert rule.matches("other-pkg-1.0-x86_64.tar.zst")
        assert not rule.matches("pkg-1.1.tgz")

    def test_substring_is_literal(self):
        """Regex metacharacters are not special in substring mode."""
        rule = FaultRule(pattern="pkg.1", kind=FaultKind.NOT_FOUND)

        assert rule.matches("pkg.1.tgz")
        assert not rule.matches("pkg-1.tgz")

    def test_regex_match_searches_anywhere(self):
        rule = FaultRule(pattern=r"\.sig$", match=MatchEnum.REGEX, kind=FaultKind.NOT_FOUND)

        assert rule.matches("pkg-1.0.tgz.sig")
        assert not rule.matches("pkg-1.0.sig.tgz")

    def test_invalid_regex_rejected(self):
        with pytest.raises(ValidationError, match="Invalid regex"):
            FaultRule(pattern="pkg-(", match=MatchEnum.REGEX, kind=FaultKind.TRUNCATE)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            FaultRule(pattern="pkg", kind="explode")

    def test_empty_pattern_rejected(self):
        with pytest.raises(ValidationError):
            FaultRule(pattern="", kind=FaultKind.TRUNCATE)

    def test_slow_default_delay(self):
        rule = FaultRule(pattern="pkg", kind=FaultKind.SLOW)

        assert rule.delay == 1.0

    def test_rule_is_immutable(self):
        rule = FaultRule(pattern="pkg", kind=FaultKind.SLOW)

        with pytest.raises(ValidationError):
            rule.kind = FaultKind.NONE


@pytest.mark.unit
class TestFaultTable:
    """Test first-match-wins classification."""

    def test_no_rules_means_none(self):
        table = FaultTable()

        assert table.classify("pkg-1.0.tgz") == FaultKind.NONE
        assert table.lookup("pkg-1.0.tgz") is None

    def test_no_match_means_none(self):
        table = FaultTable([FaultRule(pattern="foo", kind=FaultKind.NOT_FOUND)])

        assert table.classify("pkg-1.0.tgz") == FaultKind.NONE

    def test_first_matching_rule_wins(self):
        table = FaultTable([
            FaultRule(pattern="pkg-1.0", kind=FaultKind.SIZE_MISMATCH),
            FaultRule(pattern="pkg", kind=FaultKind.NOT_FOUND),
        ])

        assert table.classify("pkg-1.0.tgz") == FaultKind.SIZE_MISMATCH
        assert table.classify("pkg-2.0.tgz") == FaultKind.NOT_FOUND

    def test_none_rule_exempts_later_rules(self):
        table = FaultTable([
            FaultRule(pattern="core.db", kind=FaultKind.NONE),
            FaultRule(pattern=".db", kind=FaultKind.NOT_FOUND),
        ])

        assert table.classify("core.db") == FaultKind.NONE
        assert table.lookup("core.db").kind == FaultKind.NONE
        assert table.classify("extra.db") == FaultKind.NOT_FOUND

    def test_rules_are_a_tuple(self):
        rules = [FaultRule(pattern="a", kind=FaultKind.TRUNCATE)]
        table = FaultTable(rules)
        rules.append(FaultRule(pattern="b", kind=FaultKind.TRUNCATE))

        assert len(table) == 1
        assert isinstance(table.rules, tuple)


@pytest.mark.unit
class TestParseFaultOption:
    """Test KIND:PATTERN command-line rules."""

    def test_basic_rule(self):
        rule = parse_fault_option("truncate:pkg-1.0")

        assert rule.kind == FaultKind.TRUNCATE
        assert rule.pattern == "pkg-1.0"
        assert rule.match == MatchEnum.SUBSTRING

    def test_pattern_may_contain_colons(self):
        rule = parse_fault_option("not_found:a:b")

        assert rule.pattern == "a:b"

    def test_slow_with_delay(self):
        rule = parse_fault_option("slow@2.5:pkg")

        assert rule.kind == FaultKind.SLOW
        assert rule.delay == 2.5

    def test_regex_mode(self):
        rule = parse_fault_option(r"size_mismatch:\.db$", MatchEnum.REGEX)

        assert rule.match == MatchEnum.REGEX
        assert rule.matches("core.db")

    @pytest.mark.parametrize("text", ["truncate", "truncate:", ":pkg", "bogus:pkg", "slow@fast:pkg"])
    def test_invalid_options(self, text):
        with pytest.raises(ValueError, match="Invalid fault rule"):
            parse_fault_option(text)


@pytest.mark.unit
class TestLoadFaultRules:
    """Test JSON rule files."""

    def test_load_list(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([
            {"pattern": "pkg-1.0", "kind": "truncate"},
            {"pattern": "\\.sig$", "match": "regex", "kind": "not_found"},
        ]))

        rules = load_fault_rules(path)

        assert [r.kind for r in rules] == [FaultKind.TRUNCATE, FaultKind.NOT_FOUND]
        assert rules[1].match == MatchEnum.REGEX

    def test_load_rules_object(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [{"pattern": "x", "kind": "slow", "delay": 0.1}]}))

        rules = load_fault_rules(path)

        assert rules[0].delay == 0.1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="Cannot read fault rule file"):
            load_fault_rules(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Cannot read fault rule file"):
            load_fault_rules(path)

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"faults": []}))

        with pytest.raises(ValueError, match="must contain a list"):
            load_fault_rules(path)

    def test_invalid_entry(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([{"pattern": "x", "kind": "melt"}]))

        with pytest.raises(ValueError, match="Invalid rule"):
            load_fault_rules(path)

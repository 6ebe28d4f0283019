#!/usr/bin/env python3
"""
Test suite for rule_resolver module.

Tests fragment merging, disable precedence, default rule activation,
malformed entry handling, and style file loading.
"""

import json
import os

import pytest

from rule_model import Behavior, Severity
from rule_resolver import (
    ConfigurationError,
    StyleFragment,
    clear_style_cache,
    load_style_file,
    parse_rule_reference,
    parse_style_text,
    parse_tag_rule,
    resolve_rules,
)
from violation_reporter import ViolationReporter


H1_RULE = {
    "tagNames": ["H1"],
    "behavior": "Warning",
    "messageFormatter": "{0} is not allowed",
    "openingTagOnly": True,
}


@pytest.fixture(autouse=True)
def fresh_cache():
    clear_style_cache()
    yield
    clear_style_cache()


# ============================================================================
# Entry Parsing Tests
# ============================================================================

def test_parse_tag_rule_full():
    rule = parse_tag_rule({
        "tagNames": ["H1", "h2"],
        "behavior": "error",
        "messageFormatter": "{0}",
        "customValidatorContractName": "checker",
        "openingTagOnly": True,
    })
    assert rule.tag_names == frozenset({"h1", "h2"})
    assert rule.behavior is Behavior.ERROR
    assert rule.custom_validator_contract_name == "checker"
    assert rule.opening_tag_only is True


def test_parse_tag_rule_defaults():
    rule = parse_tag_rule({"tagNames": ["b"], "messageFormatter": "no {0}"})
    assert rule.behavior is Behavior.WARNING
    assert rule.custom_validator_contract_name is None
    assert rule.opening_tag_only is False


@pytest.mark.parametrize("entry", [
    {"tagNames": [], "messageFormatter": "m"},
    {"tagNames": [""], "messageFormatter": "m"},
    {"behavior": "Warning", "messageFormatter": "m"},
    {"tagNames": ["b"], "behavior": "Loud", "messageFormatter": "m"},
    {"tagNames": ["b"], "behavior": "Warning"},
    {"tagNames": ["b"], "messageFormatter": "m", "customValidatorContractName": 5},
    {"tagNames": ["b"], "messageFormatter": "m", "openingTagOnly": "yes"},
    "not an object",
])
def test_parse_tag_rule_malformed(entry):
    with pytest.raises(ValueError):
        parse_tag_rule(entry)


def test_parse_rule_reference_forms():
    assert parse_rule_reference("x").contract_name == "x"
    assert parse_rule_reference("x").disabled is False
    assert parse_rule_reference({"name": "x", "disable": True}).disabled is True
    assert parse_rule_reference({"contractName": "y"}).contract_name == "y"


@pytest.mark.parametrize("entry", [{}, {"name": ""}, 42, None, {"name": "x", "disable": "false"}])
def test_parse_rule_reference_malformed(entry):
    with pytest.raises(ValueError):
        parse_rule_reference(entry)


# ============================================================================
# Merge Tests
# ============================================================================

def test_tag_rules_collected_without_dedup():
    rule_set = resolve_rules([
        StyleFragment("a", {"tagRules": [H1_RULE]}),
        StyleFragment("b", {"tagRules": [H1_RULE]}),
    ])
    assert len(rule_set.tag_rules) == 2


def test_default_rule_active_without_listing():
    rule_set = resolve_rules([StyleFragment("a", {"rules": []})])
    assert rule_set.active_rules == ("default",)


def test_default_rule_disabled_explicitly():
    rule_set = resolve_rules([StyleFragment("a", {"rules": [{"name": "default", "disable": True}]})])
    assert "default" not in rule_set.active_rules


def test_default_rule_listed_once():
    rule_set = resolve_rules([StyleFragment("a", {"rules": ["x", "default"]})])
    assert rule_set.active_rules == ("default", "x")


@pytest.mark.parametrize("order", ["enable_first", "disable_first"])
def test_disable_wins_regardless_of_order(order):
    enable = StyleFragment("enable", {"rules": ["X"]})
    disable = StyleFragment("disable", {"rules": [{"name": "X", "disable": True}]})
    fragments = [enable, disable] if order == "enable_first" else [disable, enable]

    rule_set = resolve_rules(fragments)

    assert "X" not in rule_set.active_rules
    assert "X" in rule_set.disabled_rules


def test_enabled_names_deduplicated_in_first_seen_order():
    rule_set = resolve_rules([
        StyleFragment("a", {"rules": ["b", "a"]}),
        StyleFragment("b", {"rules": ["a", {"name": "c"}]}),
    ])
    assert rule_set.active_rules == ("default", "b", "a", "c")


def test_empty_fragment_list():
    rule_set = resolve_rules([])
    assert rule_set.tag_rules == ()
    assert rule_set.active_rules == ("default",)


def test_malformed_entries_reported_and_skipped():
    reporter = ViolationReporter(log_violations=False)
    rule_set = resolve_rules([
        StyleFragment("style.json", {
            "tagRules": [H1_RULE, {"tagNames": []}],
            "rules": ["ok", 7],
        }),
    ], reporter)

    assert len(rule_set.tag_rules) == 1
    assert rule_set.active_rules == ("default", "ok")
    assert reporter.error_count == 2
    assert all(v.source_file == "style.json" for v in reporter.violations)
    assert all(v.severity is Severity.ERROR for v in reporter.violations)


def test_non_boolean_disable_reported_not_applied():
    reporter = ViolationReporter(log_violations=False)
    rule_set = resolve_rules([
        StyleFragment("style.json", {"rules": ["x", {"name": "x", "disable": "false"}]}),
    ], reporter)

    assert rule_set.active_rules == ("default", "x")
    assert rule_set.disabled_rules == frozenset()
    assert reporter.error_count == 1
    assert "disable" in reporter.violations[0].message


def test_tag_rules_remember_their_style_file():
    rule_set = resolve_rules([
        StyleFragment("base.json", {"tagRules": [H1_RULE]}),
        StyleFragment("team.yml", {"tagRules": [H1_RULE]}),
    ])

    assert [rule.source for rule in rule_set.tag_rules] == ["base.json", "team.yml"]


def test_malformed_section_types_reported():
    reporter = ViolationReporter(log_violations=False)
    resolve_rules([StyleFragment("s", {"tagRules": {}, "rules": "x"})], reporter)
    assert reporter.error_count == 2


def test_malformed_entry_raises_without_reporter():
    with pytest.raises(ConfigurationError):
        resolve_rules([StyleFragment("s", {"tagRules": [{"tagNames": []}]})])


# ============================================================================
# Style File Tests
# ============================================================================

def test_load_json_style_file(tmp_path):
    path = tmp_path / "md.style.json"
    path.write_text(json.dumps({"tagRules": [H1_RULE], "rules": ["x"]}))

    fragment = load_style_file(path)

    assert fragment.source == str(path)
    assert fragment.data["rules"] == ["x"]


def test_load_yaml_style_file(tmp_path):
    path = tmp_path / "style.yml"
    path.write_text(
        "tagRules:\n"
        "  - tagNames: [H1]\n"
        "    behavior: Error\n"
        "    messageFormatter: '{0} is not allowed'\n"
        "rules:\n"
        "  - x\n"
        "  - name: y\n"
        "    disable: true\n"
    )

    rule_set = resolve_rules([load_style_file(path)])

    assert rule_set.tag_rules[0].behavior is Behavior.ERROR
    assert rule_set.active_rules == ("default", "x")
    assert "y" in rule_set.disabled_rules


def test_load_style_file_cached(tmp_path):
    path = tmp_path / "style.json"
    path.write_text("{}")

    assert load_style_file(path) is load_style_file(path)
    assert load_style_file(path, use_cache=False) is not load_style_file(path)


def test_edited_style_file_reloaded(tmp_path):
    path = tmp_path / "style.json"
    path.write_text(json.dumps({"rules": ["a"]}))
    assert resolve_rules([load_style_file(path)]).active_rules == ("default", "a")

    path.write_text(json.dumps({"rules": ["b"]}))
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    assert resolve_rules([load_style_file(path)]).active_rules == ("default", "b")


def test_load_style_file_missing(tmp_path):
    with pytest.raises(ConfigurationError):
        load_style_file(tmp_path / "missing.json")


def test_parse_style_text_invalid_json():
    with pytest.raises(ConfigurationError):
        parse_style_text("{not json", "bad.json")


def test_parse_style_text_non_object():
    with pytest.raises(ConfigurationError):
        parse_style_text("[1, 2]", "list.json")


def test_parse_style_text_empty_yaml():
    assert parse_style_text("", "empty.yml", use_yaml=True).data == {}

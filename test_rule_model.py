#!/usr/bin/env python3
"""
Tests for rule_model.py - Rule definitions and violations.

Test coverage:
- Behavior parsing from configuration values
- TagRule invariants and structural matching
- Message formatter substitution
- RuleReference default detection
- Violation position and formatting
"""

import unittest

from rule_model import (
    DEFAULT_CONTRACT_NAME,
    Behavior,
    EffectiveRuleSet,
    RuleReference,
    Severity,
    TagRule,
    Violation,
)


class TestBehavior(unittest.TestCase):
    """Test behavior parsing."""

    def test_parse_is_case_insensitive(self):
        self.assertIs(Behavior.parse("warning"), Behavior.WARNING)
        self.assertIs(Behavior.parse("ERROR"), Behavior.ERROR)
        self.assertIs(Behavior.parse("None"), Behavior.NONE)

    def test_parse_unknown_value(self):
        with self.assertRaises(ValueError):
            Behavior.parse("Fatal")

    def test_parse_non_string(self):
        with self.assertRaises(ValueError):
            Behavior.parse(3)


class TestTagRule(unittest.TestCase):
    """Test TagRule invariants and matching."""

    def test_empty_tag_names_rejected(self):
        with self.assertRaises(ValueError):
            TagRule(frozenset(), Behavior.WARNING, "msg")

    def test_formatter_required_unless_behavior_none(self):
        with self.assertRaises(ValueError):
            TagRule(frozenset({"h1"}), Behavior.ERROR, "")

        rule = TagRule(frozenset({"h1"}), Behavior.NONE)
        self.assertEqual(rule.message_formatter, "")

    def test_tag_names_normalized_to_lower_case(self):
        rule = TagRule(frozenset({"H1", "Div"}), Behavior.WARNING, "msg")
        self.assertEqual(rule.tag_names, frozenset({"h1", "div"}))

    def test_matches_any_case(self):
        rule = TagRule(frozenset({"H1"}), Behavior.WARNING, "msg")
        self.assertTrue(rule.matches("h1", False))
        self.assertTrue(rule.matches("H1", False))
        self.assertTrue(rule.matches("h1", True))
        self.assertFalse(rule.matches("h2", False))

    def test_opening_tag_only_skips_closing_tags(self):
        rule = TagRule(frozenset({"h1"}), Behavior.WARNING, "msg", opening_tag_only=True)
        self.assertTrue(rule.matches("h1", False))
        self.assertFalse(rule.matches("h1", True))

    def test_format_message_exact(self):
        rule = TagRule(frozenset({"H1"}), Behavior.WARNING, "{0} is the tag name of {1}.")
        self.assertEqual(
            rule.format_message("H1", '<H1 class="heading">'),
            'H1 is the tag name of <H1 class="heading">.',
        )

    def test_format_message_leaves_other_placeholders(self):
        rule = TagRule(frozenset({"b"}), Behavior.WARNING, "{2} {name} {0} {1:>5} {}")
        self.assertEqual(rule.format_message("b", "<b>"), "{2} {name} b {1:>5} {}")

    def test_format_message_does_not_execute_format_specs(self):
        rule = TagRule(frozenset({"b"}), Behavior.WARNING, "{0.__class__} {1}")
        self.assertEqual(rule.format_message("b", "<b>"), "{0.__class__} <b>")


class TestRuleReference(unittest.TestCase):
    """Test RuleReference defaults."""

    def test_default_contract(self):
        self.assertTrue(RuleReference(DEFAULT_CONTRACT_NAME).is_default)
        self.assertFalse(RuleReference("custom").is_default)

    def test_disabled_defaults_to_false(self):
        self.assertFalse(RuleReference("custom").disabled)


class TestEffectiveRuleSet(unittest.TestCase):

    def test_to_dict(self):
        rule_set = EffectiveRuleSet(
            tag_rules=(TagRule(frozenset({"H2", "h1"}), Behavior.ERROR, "{0}"),),
            active_rules=("default", "x"),
            disabled_rules=frozenset({"y"}),
        )
        data = rule_set.to_dict()
        self.assertEqual(data["tagRules"][0]["tagNames"], ["h1", "h2"])
        self.assertEqual(data["tagRules"][0]["behavior"], "Error")
        self.assertEqual(data["activeRules"], ["default", "x"])
        self.assertEqual(data["disabledRules"], ["y"])


class TestViolation(unittest.TestCase):
    """Test Violation position and formatting."""

    def test_position(self):
        self.assertEqual(Violation(Severity.ERROR, "m", "a.md", 3, 5).position, (3, 5))
        self.assertIsNone(Violation(Severity.ERROR, "m", "a.md").position)

    def test_format_error_with_position(self):
        violation = Violation(Severity.WARNING, "H1 is not allowed", "docs/intro.md", 3, 1, "tag-rule")
        formatted = violation.format_error()

        self.assertIn("[WARNING]", formatted)
        self.assertIn("docs/intro.md:3:1", formatted)
        self.assertIn("tag-rule", formatted)
        self.assertIn("H1 is not allowed", formatted)

    def test_format_error_file_level(self):
        violation = Violation(Severity.ERROR, "Missing title", "a.md")
        formatted = violation.format_error()

        self.assertIn("[ERROR] a.md", formatted)
        self.assertNotIn("a.md:0", formatted)


if __name__ == '__main__':
    unittest.main()

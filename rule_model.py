#!/usr/bin/env python3
"""
Rule Model - In-memory representation of markdown style rules.

This module defines the immutable data model shared by the resolver and
the three rule engines:
- TagRule: policy restricting usage of HTML tags in document source
- RuleReference: named reference to a token or metadata validator
- EffectiveRuleSet: merged, immutable rule set for a single build
- Violation: a single finding produced by any rule engine
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple


# Reserved contract name for rules active without explicit enablement
DEFAULT_CONTRACT_NAME = "default"

# Source label for configuration problems not tied to a single style file
RULES_SOURCE = "<rules>"

# Only {0} and {1} are substituted; anything else stays verbatim
_PLACEHOLDER_PATTERN = re.compile(r"\{([01])\}")


class Behavior(Enum):
    """Action taken when a tag rule matches."""
    NONE = "None"
    WARNING = "Warning"
    ERROR = "Error"

    @classmethod
    def parse(cls, value: str) -> "Behavior":
        """
        Parse a behavior name from configuration (case-insensitive).

        Raises:
            ValueError: If value is not a known behavior
        """
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        raise ValueError(
            f"Unknown tag rule behavior: {value!r}. "
            f"Expected one of: {', '.join(m.value for m in cls)}"
        )


class Severity(Enum):
    """Severity of a reported violation."""
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class TagRule:
    """
    Policy restricting usage of one or more HTML tags.

    Attributes:
        tag_names: Lower-cased tag names the rule applies to
        behavior: Action taken on match
        message_formatter: Template with {0}=tag name, {1}=full tag text
        custom_validator_contract_name: Optional tag validator gating the match
        opening_tag_only: Ignore closing tags when True
        source: Style file that declared the rule
    """
    tag_names: FrozenSet[str]
    behavior: Behavior = Behavior.WARNING
    message_formatter: str = ""
    custom_validator_contract_name: Optional[str] = None
    opening_tag_only: bool = False
    source: str = field(default=RULES_SOURCE, compare=False)

    def __post_init__(self):
        if not self.tag_names:
            raise ValueError("Tag rule must name at least one tag")
        if self.behavior is not Behavior.NONE and not self.message_formatter:
            raise ValueError(
                f"Tag rule for {', '.join(sorted(self.tag_names))} "
                "requires a messageFormatter"
            )
        # Normalize so matching never depends on configured case
        object.__setattr__(
            self, "tag_names", frozenset(name.lower() for name in self.tag_names)
        )

    def matches(self, tag_name: str, is_closing: bool) -> bool:
        """Check whether a tag occurrence structurally matches this rule."""
        if self.opening_tag_only and is_closing:
            return False
        return tag_name.lower() in self.tag_names

    def format_message(self, tag_name: str, full_text: str) -> str:
        """
        Substitute {0} and {1} in the message formatter.

        Example:
            >>> rule = TagRule(frozenset({"h1"}), Behavior.WARNING, "{0} in {1}")
            >>> rule.format_message("H1", "<H1>")
            'H1 in <H1>'
        """
        values = (tag_name, full_text)
        return _PLACEHOLDER_PATTERN.sub(
            lambda match: values[int(match.group(1))], self.message_formatter
        )


@dataclass(frozen=True)
class RuleReference:
    """Reference to a token or metadata validator by contract name."""
    contract_name: str
    disabled: bool = False

    @property
    def is_default(self) -> bool:
        return self.contract_name == DEFAULT_CONTRACT_NAME


@dataclass(frozen=True)
class EffectiveRuleSet:
    """
    Merged rule set for one build.

    Attributes:
        tag_rules: Every tag rule from every fragment, in load order
        active_rules: Deduplicated active contract names, default first
        disabled_rules: Contract names disabled by any fragment
    """
    tag_rules: Tuple[TagRule, ...] = ()
    active_rules: Tuple[str, ...] = ()
    disabled_rules: FrozenSet[str] = frozenset()

    def to_dict(self):
        """Plain representation for display."""
        return {
            "tagRules": [
                {
                    "tagNames": sorted(rule.tag_names),
                    "behavior": rule.behavior.value,
                    "messageFormatter": rule.message_formatter,
                    "customValidatorContractName": rule.custom_validator_contract_name,
                    "openingTagOnly": rule.opening_tag_only,
                }
                for rule in self.tag_rules
            ],
            "activeRules": list(self.active_rules),
            "disabledRules": sorted(self.disabled_rules),
        }


@dataclass(frozen=True)
class Violation:
    """
    A single rule violation.

    Attributes:
        severity: Warning or error
        message: Formatted message
        source_file: Document or configuration source the violation belongs to
        line_number: 1-based line (0 for file-level violations)
        column: 1-based column (0 when unknown)
        rule: Name of the rule that produced the violation
    """
    severity: Severity
    message: str
    source_file: str
    line_number: int = 0
    column: int = 0
    rule: str = ""

    @property
    def position(self) -> Optional[Tuple[int, int]]:
        if self.line_number <= 0:
            return None
        return (self.line_number, self.column)

    def format_error(self) -> str:
        """
        Format violation for console output.

        Example:
            [WARNING] docs/intro.md:3:1: tag-rule
              H1 is not allowed
        """
        severity_tag = f"[{self.severity.value.upper()}]"
        location = self.source_file
        if self.line_number > 0:
            location += f":{self.line_number}"
            if self.column > 0:
                location += f":{self.column}"
        header = f"{severity_tag} {location}"
        if self.rule:
            header += f": {self.rule}"
        return f"{header}\n  {self.message}"

#!/usr/bin/env python3
"""
Tag Rule Engine - Apply tag rules to raw HTML tag occurrences.

For every occurrence and every tag rule:
1. Structural match: tag name in rule (case-insensitive), and the
   occurrence is an opening tag when the rule is opening-tag-only
2. Custom validator gate: when configured, the validator must confirm
   the violation; an unknown contract name is a configuration error
3. Behavior dispatch: None reports nothing, Warning and Error report
   with the matching severity

All matching rules fire independently; there is no short-circuiting.
"""

import threading
from typing import Iterable, Set

import structlog

from rule_model import Behavior, EffectiveRuleSet, Severity, TagRule, Violation
from markdown_parser import TagOccurrence
from validator_registry import ValidatorNotFoundError, ValidatorRegistry
from violation_reporter import ViolationReporter

logger = structlog.get_logger()

TAG_RULE_NAME = "tag-rule"
CONFIGURATION_RULE_NAME = "configuration"


class TagRuleEngine:
    """
    Evaluates tag rules for one build.

    Example:
        >>> engine = TagRuleEngine(rule_set, registry, reporter)
        >>> engine.validate("intro.md", occurrences)
        2
    """

    def __init__(self, rule_set: EffectiveRuleSet, registry: ValidatorRegistry,
                 reporter: ViolationReporter):
        self.rule_set = rule_set
        self.registry = registry
        self.reporter = reporter
        self._missing_lock = threading.Lock()
        self._missing_contracts: Set[str] = set()

    def validate(self, source_file: str, occurrences: Iterable[TagOccurrence]) -> int:
        """
        Evaluate all tag rules against a document's tag occurrences.

        Args:
            source_file: Document path used for attribution
            occurrences: Tag occurrences in document order

        Returns:
            Number of violations reported (configuration errors excluded)
        """
        reported = 0

        for occurrence in occurrences:
            for rule in self.rule_set.tag_rules:
                if not rule.matches(occurrence.tag_name, occurrence.is_closing):
                    continue
                if not self._confirmed(rule, occurrence):
                    continue
                if self._dispatch(rule, occurrence, source_file):
                    reported += 1

        logger.debug("tag_rules_evaluated", source_file=source_file, violations=reported)
        return reported

    def _confirmed(self, rule: TagRule, occurrence: TagOccurrence) -> bool:
        """Run the rule's custom validator, if any, to confirm the match."""
        contract_name = rule.custom_validator_contract_name
        if not contract_name:
            return True

        try:
            validator = self.registry.resolve_tag_validator(contract_name)
        except ValidatorNotFoundError as e:
            self._report_missing(rule, e)
            return False

        return validator.validate(occurrence.full_text)

    def _dispatch(self, rule: TagRule, occurrence: TagOccurrence, source_file: str) -> bool:
        if rule.behavior is Behavior.NONE:
            return False

        severity = Severity.ERROR if rule.behavior is Behavior.ERROR else Severity.WARNING
        self.reporter.report(Violation(
            severity=severity,
            message=rule.format_message(occurrence.tag_name, occurrence.full_text),
            source_file=source_file,
            line_number=occurrence.line_number,
            column=occurrence.column,
            rule=TAG_RULE_NAME,
        ))
        return True

    def _report_missing(self, rule: TagRule, error: ValidatorNotFoundError) -> None:
        """Report an unresolvable contract once per build against the declaring style file."""
        with self._missing_lock:
            if error.contract_name in self._missing_contracts:
                return
            self._missing_contracts.add(error.contract_name)
        self.reporter.warning(str(error), rule.source, rule=CONFIGURATION_RULE_NAME)

#!/usr/bin/env python3
"""
Token Rule Engine - Run token validators over the markdown token tree.

Validators are collected once per build from every active rule that
resolves to a TokenValidatorProvider. For each document the tree is walked
once and every node is passed to the validators registered for its type,
in rule order.

Validators signal findings two ways:
- report_warning()/report_error(): recorded, traversal continues
- raise FatalValidationError: the document is aborted and the error
  propagates to the caller untouched
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

import structlog

from rule_model import EffectiveRuleSet
from markdown_parser import TokenNode
from validator_registry import TokenValidator, ValidatorRegistry
from violation_reporter import rule_scope

logger = structlog.get_logger()


class TokenRuleEngine:
    """
    Dispatches token nodes to token validators by token type.

    Must be called inside a reporting_scope for the document so that
    validators can report non-fatal findings.
    """

    def __init__(self, rule_set: EffectiveRuleSet, registry: ValidatorRegistry):
        self._validators: Dict[str, List[Tuple[str, TokenValidator]]] = defaultdict(list)

        for contract_name in rule_set.active_rules:
            if not registry.has_token_provider(contract_name):
                continue
            provider = registry.resolve_token_provider(contract_name)
            for validator in provider.get_validators():
                self._validators[validator.token_type].append((contract_name, validator))

    @property
    def token_types(self) -> List[str]:
        return sorted(self._validators)

    def validate(self, nodes: Iterable[TokenNode]) -> int:
        """
        Invoke matching validators for every node.

        Args:
            nodes: Token nodes from markdown_parser.walk_tokens()

        Returns:
            Number of validator invocations

        Raises:
            FatalValidationError: Propagated from any validator
        """
        if not self._validators:
            return 0

        calls = 0
        for node in nodes:
            for contract_name, validator in self._validators.get(node.type, ()):
                with rule_scope(contract_name):
                    validator.validate(node)
                calls += 1

        logger.debug("token_rules_evaluated", validator_calls=calls)
        return calls

#!/usr/bin/env python3
"""
Metadata Rule Engine - Run metadata validators once per document.

The metadata map is the caller's fully merged view (YAML header, global
and file-scoped metadata); merge precedence is not decided here.
"""

from types import MappingProxyType
from typing import Any, List, Mapping, Tuple

import structlog

from rule_model import EffectiveRuleSet
from validator_registry import MetadataValidator, ValidatorRegistry
from violation_reporter import rule_scope

logger = structlog.get_logger()


class MetadataRuleEngine:
    """Invokes every active metadata validator for a document."""

    def __init__(self, rule_set: EffectiveRuleSet, registry: ValidatorRegistry):
        self._validators: List[Tuple[str, MetadataValidator]] = [
            (name, registry.resolve_metadata_validator(name))
            for name in rule_set.active_rules
            if registry.has_metadata_validator(name)
        ]

    @property
    def contract_names(self) -> List[str]:
        return [name for name, _ in self._validators]

    def validate(self, source_file: str, metadata: Mapping[str, Any]) -> int:
        """
        Run each validator once against the document metadata.

        Returns:
            Number of validators invoked

        Raises:
            FatalValidationError: Propagated from any validator
        """
        # Validators share one map; none may mutate it
        view = MappingProxyType(dict(metadata))
        for contract_name, validator in self._validators:
            with rule_scope(contract_name):
                validator.validate(source_file, view)

        logger.debug("metadata_rules_evaluated", source_file=source_file,
                     validators=len(self._validators))
        return len(self._validators)

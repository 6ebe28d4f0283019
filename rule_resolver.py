#!/usr/bin/env python3
"""
Rule Resolver - Merge style fragments into an effective rule set.

A style fragment supplies tag rules and named rule entries:

    {
      "tagRules": [{"tagNames": ["H1"], "behavior": "Warning",
                    "messageFormatter": "{0} is not allowed",
                    "customValidatorContractName": null,
                    "openingTagOnly": true}],
      "rules": ["my-rule", {"name": "other-rule", "disable": true}]
    }

Merge semantics:
- Tag rules from every fragment are kept, in load order, without dedup.
- A named rule is active if it is the default contract or is enabled by
  some fragment. Disabling in any fragment wins over every enablement.
- Malformed entries are reported as configuration violations attributed
  to the fragment source and skipped.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from rule_model import (
    DEFAULT_CONTRACT_NAME,
    RULES_SOURCE,
    Behavior,
    EffectiveRuleSet,
    RuleReference,
    TagRule,
)
from violation_reporter import ViolationReporter


# Global style cache keyed by resolved path and file stamp; an edited file is reloaded
_style_cache: Dict[Tuple[Path, int, int], "StyleFragment"] = {}

YAML_SUFFIXES = {".yml", ".yaml"}


class ConfigurationError(ValueError):
    """Raised when a style file cannot be read or parsed."""
    pass


@dataclass(frozen=True)
class StyleFragment:
    """
    One configuration fragment.

    Attributes:
        source: Where the fragment came from (file path or label)
        data: Parsed fragment content
    """
    source: str
    data: Dict[str, Any] = field(default_factory=dict)


def parse_style_text(text: str, source: str, use_yaml: bool = False) -> StyleFragment:
    """
    Parse style fragment text.

    Args:
        text: JSON or YAML text
        source: Label used when reporting problems
        use_yaml: Parse as YAML instead of JSON

    Raises:
        ConfigurationError: If the text is not a mapping in the given format
    """
    try:
        data = yaml.safe_load(text) if use_yaml else json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to parse style file {source}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Style file {source} must contain an object, found {type(data).__name__}"
        )
    return StyleFragment(source=source, data=data)


def load_style_file(path: Path, use_cache: bool = True) -> StyleFragment:
    """
    Load a style fragment from a JSON or YAML file with caching.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(path)
    try:
        stat = path.stat()
        key = (path.resolve(), stat.st_mtime_ns, stat.st_size)
        if use_cache and key in _style_cache:
            return _style_cache[key]
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read style file {path}: {e}")

    fragment = parse_style_text(text, str(path), use_yaml=path.suffix.lower() in YAML_SUFFIXES)

    if use_cache:
        _style_cache[key] = fragment
    return fragment


def clear_style_cache() -> None:
    _style_cache.clear()


def parse_tag_rule(entry: Any, source: str = RULES_SOURCE) -> TagRule:
    """
    Build a TagRule from its configuration form.

    Args:
        entry: Tag rule object from a style fragment
        source: Style file the entry came from

    Raises:
        ValueError: If the entry is malformed
    """
    if not isinstance(entry, dict):
        raise ValueError(f"Tag rule must be an object, found {type(entry).__name__}")

    tag_names = entry.get("tagNames")
    if isinstance(tag_names, str):
        tag_names = [tag_names]
    if not isinstance(tag_names, list) or not tag_names:
        raise ValueError("Tag rule requires a non-empty tagNames list")
    if not all(isinstance(name, str) and name.strip() for name in tag_names):
        raise ValueError(f"Tag rule has invalid tag names: {tag_names}")

    behavior = Behavior.parse(entry.get("behavior", Behavior.WARNING.value))

    contract_name = entry.get("customValidatorContractName")
    if contract_name is not None and not isinstance(contract_name, str):
        raise ValueError("customValidatorContractName must be a string or null")

    formatter = entry.get("messageFormatter") or ""
    if not isinstance(formatter, str):
        raise ValueError("messageFormatter must be a string")

    opening_tag_only = entry.get("openingTagOnly", False)
    if not isinstance(opening_tag_only, bool):
        raise ValueError(f"openingTagOnly must be true or false, found {opening_tag_only!r}")

    return TagRule(
        tag_names=frozenset(name.strip() for name in tag_names),
        behavior=behavior,
        message_formatter=formatter,
        custom_validator_contract_name=contract_name or None,
        opening_tag_only=opening_tag_only,
        source=source,
    )


def parse_rule_reference(entry: Any) -> RuleReference:
    """
    Build a RuleReference from a bare name or a {name, disable} object.

    Raises:
        ValueError: If the entry is malformed
    """
    if isinstance(entry, str):
        name, disabled = entry, False
    elif isinstance(entry, dict):
        name = entry.get("name", entry.get("contractName"))
        disabled = entry.get("disable", False)
        if not isinstance(disabled, bool):
            raise ValueError(f"Rule entry 'disable' must be true or false, found {disabled!r}")
    else:
        raise ValueError(f"Rule entry must be a name or an object, found {type(entry).__name__}")

    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"Rule entry has no name: {entry!r}")
    return RuleReference(contract_name=name.strip(), disabled=disabled)


def resolve_rules(fragments: Iterable[StyleFragment],
                  reporter: Optional[ViolationReporter] = None) -> EffectiveRuleSet:
    """
    Merge fragments into an EffectiveRuleSet.

    Args:
        fragments: Style fragments in load order
        reporter: Receives configuration violations for malformed entries;
            when omitted, malformed entries raise ConfigurationError

    Returns:
        Immutable effective rule set

    Example:
        >>> rules = resolve_rules([
        ...     StyleFragment("a", {"rules": ["x", "y"]}),
        ...     StyleFragment("b", {"rules": [{"name": "x", "disable": True}]}),
        ... ])
        >>> rules.active_rules
        ('default', 'y')
    """
    tag_rules: List[TagRule] = []
    enabled: List[str] = []
    disabled = set()

    def malformed(source: str, detail: str) -> None:
        if reporter is None:
            raise ConfigurationError(f"{source}: {detail}")
        reporter.error(detail, source, rule="configuration")

    for fragment in fragments:
        data = fragment.data

        raw_tag_rules = data.get("tagRules")
        if raw_tag_rules is None:
            raw_tag_rules = []
        if not isinstance(raw_tag_rules, list):
            malformed(fragment.source, "tagRules must be a list")
            raw_tag_rules = []
        for index, entry in enumerate(raw_tag_rules):
            try:
                tag_rules.append(parse_tag_rule(entry, fragment.source))
            except ValueError as e:
                malformed(fragment.source, f"Invalid tag rule at index {index}: {e}")

        raw_rules = data.get("rules")
        if raw_rules is None:
            raw_rules = []
        if not isinstance(raw_rules, list):
            malformed(fragment.source, "rules must be a list")
            raw_rules = []
        for index, entry in enumerate(raw_rules):
            try:
                reference = parse_rule_reference(entry)
            except ValueError as e:
                malformed(fragment.source, f"Invalid rule entry at index {index}: {e}")
                continue
            if reference.disabled:
                disabled.add(reference.contract_name)
            elif not reference.is_default and reference.contract_name not in enabled:
                enabled.append(reference.contract_name)

    active: List[str] = []
    if DEFAULT_CONTRACT_NAME not in disabled:
        active.append(DEFAULT_CONTRACT_NAME)
    active.extend(name for name in enabled if name not in disabled)

    return EffectiveRuleSet(
        tag_rules=tuple(tag_rules),
        active_rules=tuple(active),
        disabled_rules=frozenset(disabled),
    )

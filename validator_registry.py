#!/usr/bin/env python3
"""
Custom Validator Registry

Maps contract names to validator instances for each of the three
capability shapes:
- TagValidator: validate(raw_tag_text) -> bool (True means violation)
- TokenValidatorProvider: get_validators() -> sequence of TokenValidator
- MetadataValidator: validate(source_file, metadata) -> None

The registry is populated by an explicit registration step before the
build starts and frozen afterwards, so documents can be validated
concurrently against it without locking.
"""

import importlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

import structlog

logger = structlog.get_logger()


class ValidatorNotFoundError(LookupError):
    """Raised when a contract name has no registered validator."""

    def __init__(self, kind: str, contract_name: str):
        super().__init__(f"No {kind} registered for contract name '{contract_name}'")
        self.kind = kind
        self.contract_name = contract_name


class ValidatorRegistryError(Exception):
    """Raised on duplicate registration or registration after freeze."""
    pass


class TagValidator(ABC):
    """Custom validator gating a tag rule match."""

    @abstractmethod
    def validate(self, raw_tag_text: str) -> bool:
        """Return True when the tag text is a violation."""
        ...


@dataclass(frozen=True)
class TokenValidator:
    """
    Validator bound to a single token type.

    Attributes:
        token_type: markdown-it token type, e.g. "fence" or "link_open"
        validate: Callable receiving a TokenNode; raises FatalValidationError
            to abort the document or reports through report_warning/report_error
    """
    token_type: str
    validate: Callable[[Any], None]


class TokenValidatorProvider(ABC):
    """Source of one or more token validators."""

    @abstractmethod
    def get_validators(self) -> Sequence[TokenValidator]:
        ...


class MetadataValidator(ABC):
    """Validator run once per document against its merged metadata."""

    @abstractmethod
    def validate(self, source_file: str, metadata: Mapping[str, Any]) -> None:
        ...


class _FunctionTagValidator(TagValidator):
    def __init__(self, func: Callable[[str], bool]):
        self._func = func

    def validate(self, raw_tag_text: str) -> bool:
        return bool(self._func(raw_tag_text))


class _FunctionMetadataValidator(MetadataValidator):
    def __init__(self, func: Callable[[str, Mapping[str, Any]], None]):
        self._func = func

    def validate(self, source_file: str, metadata: Mapping[str, Any]) -> None:
        self._func(source_file, metadata)


class ValidatorRegistry:
    """
    Contract name lookup for custom validators.

    Plain functions are accepted for tag and metadata validators and are
    wrapped into the corresponding interface.

    Example:
        >>> registry = ValidatorRegistry()
        >>> registry.register_tag_validator("has-style", lambda tag: "style=" in tag)
        >>> registry.freeze()
        >>> registry.resolve_tag_validator("has-style").validate('<p style="x">')
        True
    """

    def __init__(self):
        self._tag_validators: Dict[str, TagValidator] = {}
        self._token_providers: Dict[str, TokenValidatorProvider] = {}
        self._metadata_validators: Dict[str, MetadataValidator] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Disallow further registration for the duration of the build."""
        self._frozen = True

    def _add(self, table: Dict[str, Any], kind: str, contract_name: str, validator: Any) -> None:
        if self._frozen:
            raise ValidatorRegistryError(
                f"Cannot register {kind} '{contract_name}': registry is frozen"
            )
        if not contract_name:
            raise ValidatorRegistryError(f"{kind} requires a non-empty contract name")
        if contract_name in table:
            raise ValidatorRegistryError(
                f"Duplicate {kind} registered for contract name '{contract_name}'"
            )
        table[contract_name] = validator
        logger.debug("validator_registered", kind=kind, contract_name=contract_name)

    def register_tag_validator(self, contract_name: str, validator) -> None:
        if not isinstance(validator, TagValidator):
            if not callable(validator):
                raise ValidatorRegistryError(f"Tag validator '{contract_name}' is not callable")
            validator = _FunctionTagValidator(validator)
        self._add(self._tag_validators, "tag validator", contract_name, validator)

    def register_token_provider(self, contract_name: str, provider: TokenValidatorProvider) -> None:
        if not isinstance(provider, TokenValidatorProvider):
            raise ValidatorRegistryError(
                f"Token validator provider '{contract_name}' must implement get_validators()"
            )
        self._add(self._token_providers, "token validator provider", contract_name, provider)

    def register_metadata_validator(self, contract_name: str, validator) -> None:
        if not isinstance(validator, MetadataValidator):
            if not callable(validator):
                raise ValidatorRegistryError(f"Metadata validator '{contract_name}' is not callable")
            validator = _FunctionMetadataValidator(validator)
        self._add(self._metadata_validators, "metadata validator", contract_name, validator)

    def resolve_tag_validator(self, contract_name: str) -> TagValidator:
        try:
            return self._tag_validators[contract_name]
        except KeyError:
            raise ValidatorNotFoundError("tag validator", contract_name) from None

    def resolve_token_provider(self, contract_name: str) -> TokenValidatorProvider:
        try:
            return self._token_providers[contract_name]
        except KeyError:
            raise ValidatorNotFoundError("token validator provider", contract_name) from None

    def resolve_metadata_validator(self, contract_name: str) -> MetadataValidator:
        try:
            return self._metadata_validators[contract_name]
        except KeyError:
            raise ValidatorNotFoundError("metadata validator", contract_name) from None

    def has_token_provider(self, contract_name: str) -> bool:
        return contract_name in self._token_providers

    def has_metadata_validator(self, contract_name: str) -> bool:
        return contract_name in self._metadata_validators

    def has_tag_validator(self, contract_name: str) -> bool:
        return contract_name in self._tag_validators

    def contract_names(self) -> List[str]:
        """All registered contract names across capability shapes, sorted."""
        names = set(self._tag_validators) | set(self._token_providers) | set(self._metadata_validators)
        return sorted(names)


def load_plugins(registry: ValidatorRegistry, module_names: Iterable[str]) -> None:
    """
    Import plugin modules and let each register its validators.

    Each module must expose register_validators(registry).

    Raises:
        ImportError: If a module cannot be imported
        ValidatorRegistryError: If a module has no register_validators hook
    """
    for module_name in module_names:
        module = importlib.import_module(module_name)
        hook = getattr(module, "register_validators", None)
        if hook is None:
            raise ValidatorRegistryError(
                f"Plugin module '{module_name}' does not define register_validators(registry)"
            )
        hook(registry)
        logger.debug("plugin_loaded", module=module_name)

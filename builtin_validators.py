#!/usr/bin/env python3
"""
Built-in validators.

Ready-made implementations of the three validator shapes, registered
explicitly through register_builtin_validators():
- CodeBlockLanguageProvider: fenced code blocks must declare an allowed language
- RequiredMetadataValidator: listed metadata keys must be present
- ForbiddenMetadataValidator: listed metadata keys must be absent
- AttributeTagValidator: tags carrying a given attribute are violations
"""

import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from markdown_parser import TokenNode
from validator_registry import (
    MetadataValidator,
    TagValidator,
    TokenValidator,
    TokenValidatorProvider,
    ValidatorRegistry,
)
from violation_reporter import FatalValidationError, report_error, report_warning


class CodeBlockLanguageProvider(TokenValidatorProvider):
    """
    Require fenced code blocks to use one of the allowed languages.

    Args:
        allowed_languages: Accepted info-string languages (case-insensitive)
        fatal: Abort the document on violation instead of reporting an error
    """

    def __init__(self, allowed_languages: Iterable[str], fatal: bool = True):
        self.allowed_languages = frozenset(lang.lower() for lang in allowed_languages)
        self.fatal = fatal

    def get_validators(self) -> Sequence[TokenValidator]:
        return [TokenValidator("fence", self.validate_fence)]

    def validate_fence(self, node: TokenNode) -> None:
        language = node.info.strip().split(" ")[0].lower() if node.info else ""
        if language in self.allowed_languages:
            return

        expected = ", ".join(sorted(self.allowed_languages))
        message = (
            f"Code block language '{language or '(none)'}' is not allowed "
            f"(expected one of: {expected})"
        )
        if self.fatal:
            raise FatalValidationError(message, node.source_file, node.line_number)
        report_error(message, line_number=node.line_number)


class RequiredMetadataValidator(MetadataValidator):
    """Report an error for every required metadata key that is missing or empty."""

    def __init__(self, required_keys: Iterable[str]):
        self.required_keys = list(required_keys)

    def validate(self, source_file: str, metadata: Mapping[str, Any]) -> None:
        for key in self.required_keys:
            if metadata.get(key) in (None, "", [], {}):
                report_error(f"Missing required metadata: {key}")


class ForbiddenMetadataValidator(MetadataValidator):
    """Report a warning for every forbidden metadata key that is present."""

    def __init__(self, forbidden_keys: Iterable[str], reason: Optional[str] = None):
        self.forbidden_keys = list(forbidden_keys)
        self.reason = reason

    def validate(self, source_file: str, metadata: Mapping[str, Any]) -> None:
        for key in self.forbidden_keys:
            if key in metadata:
                message = f"Forbidden metadata: {key}"
                if self.reason:
                    message += f" ({self.reason})"
                report_warning(message)


class AttributeTagValidator(TagValidator):
    """
    Flag tags that carry the given attribute.

    Example:
        >>> AttributeTagValidator("style").validate('<div style="color: red">')
        True
        >>> AttributeTagValidator("style").validate('<div class="x">')
        False
    """

    def __init__(self, attribute: str):
        self.attribute = attribute
        self._pattern = re.compile(r"\s" + re.escape(attribute) + r"(?:\s*=|[\s/>])", re.IGNORECASE)

    def validate(self, raw_tag_text: str) -> bool:
        return self._pattern.search(raw_tag_text) is not None


def register_builtin_validators(registry: ValidatorRegistry,
                                code_languages: Optional[Iterable[str]] = None,
                                required_metadata: Optional[Iterable[str]] = None,
                                forbidden_metadata: Optional[Iterable[str]] = None) -> List[str]:
    """
    Register the built-in validators under their contract names.

    Providers needing configuration are registered only when it is given.

    Returns:
        Contract names registered
    """
    registered = []

    for attribute in ("style", "onclick"):
        name = f"attribute-{attribute}"
        registry.register_tag_validator(name, AttributeTagValidator(attribute))
        registered.append(name)

    if code_languages:
        registry.register_token_provider("code-block-language", CodeBlockLanguageProvider(code_languages))
        registered.append("code-block-language")

    if required_metadata:
        registry.register_metadata_validator("required-metadata", RequiredMetadataValidator(required_metadata))
        registered.append("required-metadata")

    if forbidden_metadata:
        registry.register_metadata_validator("forbidden-metadata", ForbiddenMetadataValidator(forbidden_metadata))
        registered.append("forbidden-metadata")

    return registered

#!/usr/bin/env python3
"""
Document Validator - Apply an effective rule set to markdown documents.

Ties the parser output to the three rule engines:
- tag occurrences -> TagRuleEngine
- token tree      -> TokenRuleEngine
- merged metadata -> MetadataRuleEngine

Documents are independent and can be validated on worker threads. The
rule set and registry are read-only for the whole build; the reporter is
the only shared mutable state and is thread-safe.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog

from rule_model import DEFAULT_CONTRACT_NAME, RULES_SOURCE, EffectiveRuleSet, Violation
from markdown_parser import extract_frontmatter, extract_tag_occurrences, parse_markdown, walk_tokens
from metadata_rules import MetadataRuleEngine
from tag_rules import CONFIGURATION_RULE_NAME, TagRuleEngine
from token_rules import TokenRuleEngine
from validator_registry import ValidatorRegistry
from violation_reporter import FatalValidationError, ViolationReporter, reporting_scope

logger = structlog.get_logger()


@dataclass
class Document:
    """
    A document to validate.

    Attributes:
        source_file: Path used for attribution
        text: Full markdown text, optionally starting with a YAML header
        metadata: Metadata merged by the caller (global, file-scoped)
    """
    source_file: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BuildResult:
    """Outcome of validating a set of documents."""
    documents: int
    warnings: int
    errors: int

    @property
    def succeeded(self) -> bool:
        return self.errors == 0


class MarkdownValidator:
    """
    Validates documents against one build's rule set.

    Freezes the registry on construction so no validator can be added or
    replaced while documents are being processed.

    Example:
        >>> validator = MarkdownValidator(rule_set, registry)
        >>> result = validator.validate_documents([Document("a.md", "# Title")])
        >>> result.succeeded
        True
    """

    def __init__(self, rule_set: EffectiveRuleSet, registry: ValidatorRegistry,
                 reporter: Optional[ViolationReporter] = None):
        registry.freeze()
        self.rule_set = rule_set
        self.registry = registry
        self.reporter = reporter or ViolationReporter()
        self.tag_engine = TagRuleEngine(rule_set, registry, self.reporter)
        self.token_engine = TokenRuleEngine(rule_set, registry)
        self.metadata_engine = MetadataRuleEngine(rule_set, registry)

    def check_contracts(self) -> List[str]:
        """
        Report active rules that resolve to no token or metadata validator.

        The default rule is exempt: it is active without being configured.

        Returns:
            Unresolved contract names
        """
        unresolved = [
            name for name in self.rule_set.active_rules
            if name != DEFAULT_CONTRACT_NAME
            and not self.registry.has_token_provider(name)
            and not self.registry.has_metadata_validator(name)
        ]
        for name in unresolved:
            self.reporter.warning(
                f"No token or metadata validator registered for rule '{name}'",
                RULES_SOURCE,
                rule=CONFIGURATION_RULE_NAME,
            )
        return unresolved

    def validate_document(self, source_file: str, text: str,
                          metadata: Optional[Mapping[str, Any]] = None) -> List[Violation]:
        """
        Validate a single document.

        The YAML header, if any, is merged over the caller's metadata.

        Args:
            source_file: Document path used for attribution
            text: Full markdown text
            metadata: Caller-merged metadata (global, file-scoped)

        Returns:
            Violations recorded for this document

        Raises:
            FatalValidationError: A validator aborted the document
        """
        try:
            header, body, line_offset = extract_frontmatter(text)
        except ValueError as e:
            self.reporter.error(str(e), source_file, line_number=1, rule="yaml-header")
            header, body, line_offset = {}, text, 0

        merged: Dict[str, Any] = dict(metadata or {})
        merged.update(header)

        tokens = parse_markdown(body)

        with reporting_scope(self.reporter, source_file):
            try:
                self.tag_engine.validate(source_file, extract_tag_occurrences(tokens, line_offset))
                self.token_engine.validate(walk_tokens(tokens, source_file, line_offset))
                self.metadata_engine.validate(source_file, merged)
            except FatalValidationError as e:
                if e.source_file is None:
                    e.source_file = source_file
                logger.error("fatal_validation_failure", source_file=e.source_file,
                             line=e.line_number, message=e.message)
                raise

        logger.debug("document_validated", source_file=source_file)
        return self.reporter.violations_for(source_file)

    def validate_documents(self, documents: Iterable[Document],
                           max_workers: Optional[int] = None) -> BuildResult:
        """
        Validate documents concurrently and aggregate the build outcome.

        On the first fatal failure documents that have not started are
        cancelled, documents already running finish, and the failure is
        re-raised.

        Args:
            documents: Documents to validate
            max_workers: Worker threads (1 validates sequentially in order)

        Returns:
            BuildResult; succeeded is False if any error was reported

        Raises:
            FatalValidationError: A validator aborted a document
        """
        documents = list(documents)
        self.check_contracts()

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(self.validate_document, doc.source_file, doc.text, doc.metadata)
                for doc in documents
            ]
            try:
                for future in as_completed(futures):
                    future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        result = BuildResult(
            documents=len(documents),
            warnings=self.reporter.warning_count,
            errors=self.reporter.error_count,
        )
        logger.info("build_validated", documents=result.documents, warnings=result.warnings,
                    errors=result.errors, succeeded=result.succeeded)
        return result

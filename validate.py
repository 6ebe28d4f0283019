#!/usr/bin/env python3
"""Markdown style validation tool."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import structlog
import yaml

from builtin_validators import register_builtin_validators
from document_validator import Document, MarkdownValidator
from rule_resolver import YAML_SUFFIXES, ConfigurationError, load_style_file, resolve_rules
from validator_registry import ValidatorRegistryError, ValidatorRegistry, load_plugins
from violation_reporter import FatalValidationError, ViolationReporter


# Worker pool bounds for concurrent document validation
WORKER_LIMITS = {
    'default_workers': 4,
    'max_workers': 32,
}


def configure_logging(verbose: bool) -> None:
    """Route structlog events to stderr, debug events only when verbose."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def discover_docs(paths: List[str]) -> List[Path]:
    """Expand files and directories into a sorted list of markdown files."""
    found = set()
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            found.update(p for p in path.glob('**/*.md') if p.is_file())
        elif path.is_file():
            found.add(path)
        else:
            print(f"[WARNING] {path}: No such file or directory", file=sys.stderr)
    return sorted(found)


def load_metadata_file(path: Path) -> Dict[str, Any]:
    """Load global metadata from a JSON or YAML file.

    Raises:
        ConfigurationError: If the file is unreadable or not a mapping
    """
    try:
        text = path.read_text(encoding='utf-8')
        data = yaml.safe_load(text) if path.suffix.lower() in YAML_SUFFIXES else json.loads(text)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot load metadata file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Metadata file {path} must contain an object")
    return data


def build_registry(args) -> ValidatorRegistry:
    """Populate the validator registry from built-ins and plugin modules."""
    registry = ValidatorRegistry()
    register_builtin_validators(
        registry,
        code_languages=args.code_language,
        required_metadata=args.required_metadata,
        forbidden_metadata=args.forbidden_metadata,
    )
    load_plugins(registry, args.plugin or [])
    return registry


def check(args) -> int:
    """Validate markdown documents against style rules.

    Args:
        args: Command-line arguments from argparse

    Returns:
        Exit code: 0 on success (warnings allowed), 1 on errors
    """
    reporter = ViolationReporter(log_violations=False)

    try:
        fragments = [load_style_file(Path(p)) for p in args.style]
        global_metadata = load_metadata_file(Path(args.global_metadata)) if args.global_metadata else {}
        registry = build_registry(args)
    except (ConfigurationError, ValidatorRegistryError, ImportError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    rule_set = resolve_rules(fragments, reporter)
    validator = MarkdownValidator(rule_set, registry, reporter)

    docs = discover_docs(args.paths)
    documents = [
        Document(str(doc), doc.read_text(encoding='utf-8'), dict(global_metadata))
        for doc in docs
    ]

    workers = max(1, min(args.workers, WORKER_LIMITS['max_workers']))
    fatal = None
    result = None
    try:
        result = validator.validate_documents(documents, max_workers=workers)
    except FatalValidationError as e:
        fatal = e

    violations = sorted(
        reporter.violations,
        key=lambda v: (v.source_file, v.line_number, v.column),
    )
    for violation in violations:
        print(violation.format_error(), file=sys.stderr)

    if fatal is not None:
        print(f"[FATAL] {fatal}", file=sys.stderr)
        print("Validation aborted", file=sys.stderr)
        return 1

    summary = f"{result.documents} documents, {result.warnings} warnings, {result.errors} errors"
    if not result.succeeded:
        print(f"Validation failed: {summary}", file=sys.stderr)
        return 1

    print(f"Validation passed: {summary}")
    return 0


def show_effective_rules(args) -> int:
    """Print the resolved rule set as YAML.

    Args:
        args: Command-line arguments from argparse

    Returns:
        Exit code: 0 on success, 1 on errors
    """
    reporter = ViolationReporter(log_violations=False)
    try:
        fragments = [load_style_file(Path(p)) for p in args.style]
    except ConfigurationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    rule_set = resolve_rules(fragments, reporter)

    print("=== Effective Style Rules ===")
    print(f"Styles: {', '.join(args.style)}")
    print()
    print(yaml.dump(rule_set.to_dict(), default_flow_style=False, sort_keys=False))
    print("=" * 60)

    for violation in reporter.violations:
        print(violation.format_error(), file=sys.stderr)
    return 1 if reporter.has_errors else 0


def main(argv=None) -> int:
    """Main entry point for the validation tool."""
    parser = argparse.ArgumentParser(
        description="Validate markdown documents against style rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s check --style md.style.json docs/
  %(prog)s check --style base.yml --style team.yml --plugin my_rules docs/
  %(prog)s show-effective-rules --style base.yml --style team.yml
        """
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log debug events'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        help='Command to run'
    )

    # check subcommand
    parser_check = subparsers.add_parser(
        'check',
        help='Validate markdown files against style rules'
    )
    parser_check.add_argument('paths', nargs='+', help='Markdown files or directories')
    parser_check.add_argument(
        '--style',
        action='append',
        required=True,
        help='Style file (JSON or YAML); repeat to merge several'
    )
    parser_check.add_argument(
        '--global-metadata',
        help='JSON or YAML file with metadata applied to every document'
    )
    parser_check.add_argument(
        '--plugin',
        action='append',
        help='Module exposing register_validators(registry)'
    )
    parser_check.add_argument(
        '--workers',
        type=int,
        default=WORKER_LIMITS['default_workers'],
        help='Documents validated concurrently'
    )
    parser_check.add_argument(
        '--code-language',
        action='append',
        help='Allowed fenced code language (enables code-block-language)'
    )
    parser_check.add_argument(
        '--required-metadata',
        action='append',
        help='Metadata key every document must define (enables required-metadata)'
    )
    parser_check.add_argument(
        '--forbidden-metadata',
        action='append',
        help='Metadata key documents must not define (enables forbidden-metadata)'
    )

    # show-effective-rules subcommand
    parser_show = subparsers.add_parser(
        'show-effective-rules',
        help='Show resolved style rules and exit (debug mode)'
    )
    parser_show.add_argument(
        '--style',
        action='append',
        required=True,
        help='Style file (JSON or YAML); repeat to merge several'
    )

    # Parse arguments
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    # Dispatch to handler functions
    handlers: Dict[str, callable] = {
        'check': check,
        'show-effective-rules': show_effective_rules,
    }

    handler = handlers.get(args.command)
    if handler is None:
        print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    sys.exit(main())

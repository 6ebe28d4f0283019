#!/usr/bin/env python3
"""
Violation Reporter - Central sink for rule violations.

Two channels are supported:
- Accumulated reporting: warnings and errors are recorded and logged
  immediately, scanning continues, and any error fails the build once all
  documents are processed.
- Fatal propagation: validators raise FatalValidationError to stop the
  current document. The reporter never catches it.

Validators running inside a document scope report through report_warning()
and report_error(), which resolve the reporter and source file bound to the
current context. Each worker thread gets its own binding.
"""

import threading
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator, List, Optional

import structlog

from rule_model import Severity, Violation

logger = structlog.get_logger()


class FatalValidationError(Exception):
    """Raised by a validator to abort validation of the current document."""

    def __init__(self, message: str, source_file: Optional[str] = None, line_number: int = 0):
        super().__init__(message)
        self.message = message
        self.source_file = source_file
        self.line_number = line_number

    def __str__(self) -> str:
        if self.source_file:
            location = self.source_file
            if self.line_number > 0:
                location += f":{self.line_number}"
            return f"{location}: {self.message}"
        return self.message


class ReportingScopeError(RuntimeError):
    """Raised when report_warning/report_error is used outside a document scope."""
    pass


class ViolationReporter:
    """
    Thread-safe accumulator of violations for one build.

    Example:
        >>> reporter = ViolationReporter()
        >>> reporter.warning("Avoid <b>", "intro.md", line_number=3)
        >>> reporter.has_errors
        False
    """

    def __init__(self, log_violations: bool = True):
        self._lock = threading.Lock()
        self._violations: List[Violation] = []
        self._error_count = 0
        self._warning_count = 0
        self._log_violations = log_violations

    def report(self, violation: Violation) -> None:
        """Record a violation and emit it as a structured log event."""
        with self._lock:
            self._violations.append(violation)
            if violation.severity is Severity.ERROR:
                self._error_count += 1
            else:
                self._warning_count += 1

        if self._log_violations:
            log = logger.error if violation.severity is Severity.ERROR else logger.warning
            log(
                f"validation_{violation.severity.value}",
                message=violation.message,
                source_file=violation.source_file,
                line=violation.line_number,
                column=violation.column,
                rule=violation.rule,
            )

    def warning(self, message: str, source_file: str, line_number: int = 0,
                column: int = 0, rule: str = "") -> None:
        self.report(Violation(Severity.WARNING, message, source_file, line_number, column, rule))

    def error(self, message: str, source_file: str, line_number: int = 0,
              column: int = 0, rule: str = "") -> None:
        self.report(Violation(Severity.ERROR, message, source_file, line_number, column, rule))

    @property
    def violations(self) -> List[Violation]:
        with self._lock:
            return list(self._violations)

    @property
    def error_count(self) -> int:
        with self._lock:
            return self._error_count

    @property
    def warning_count(self) -> int:
        with self._lock:
            return self._warning_count

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def violations_for(self, source_file: str) -> List[Violation]:
        return [v for v in self.violations if v.source_file == source_file]


@dataclass(frozen=True)
class _Scope:
    reporter: ViolationReporter
    source_file: str
    rule: str = ""


_current_scope: ContextVar[Optional[_Scope]] = ContextVar("violation_scope", default=None)


@contextmanager
def reporting_scope(reporter: ViolationReporter, source_file: str, rule: str = "") -> Iterator[ViolationReporter]:
    """Bind a reporter and source file for validators called in this context."""
    token = _current_scope.set(_Scope(reporter, source_file, rule))
    try:
        yield reporter
    finally:
        _current_scope.reset(token)


@contextmanager
def rule_scope(rule: str) -> Iterator[None]:
    """Attribute reports made in this context to the named rule."""
    scope = _require_scope()
    token = _current_scope.set(_Scope(scope.reporter, scope.source_file, rule))
    try:
        yield
    finally:
        _current_scope.reset(token)


def _require_scope() -> _Scope:
    scope = _current_scope.get()
    if scope is None:
        raise ReportingScopeError("No reporting scope is active for the current document")
    return scope


def current_source_file() -> str:
    """Source file of the document currently being validated."""
    return _require_scope().source_file


def report_warning(message: str, line_number: int = 0, column: int = 0) -> None:
    """Report a warning for the current document without stopping validation."""
    scope = _require_scope()
    scope.reporter.warning(message, scope.source_file, line_number, column, scope.rule)


def report_error(message: str, line_number: int = 0, column: int = 0) -> None:
    """Report an error for the current document without stopping validation."""
    scope = _require_scope()
    scope.reporter.error(message, scope.source_file, line_number, column, scope.rule)

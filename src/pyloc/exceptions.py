"""
Exception classes for pyloc.

This module contains the error taxonomy shared by the store, the extractor,
the rewriter and the validator. Per-unit errors carry the identity of the
unit or module they belong to so that a multi-unit run can report them and
carry on with the next unit.
"""

from __future__ import annotations

from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for classification and handling."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for appropriate handling strategies."""

    PARSE = "parse"
    AMBIGUOUS = "ambiguous"
    RECORD = "record"
    CONSISTENCY = "consistency"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class PylocError(Exception):
    """Base exception class for pyloc specific errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: object | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.category: ErrorCategory = category
        self.severity: ErrorSeverity = severity
        self.context: object | None = context
        self.recoverable: bool = recoverable


class StructuralParseError(PylocError):
    """A source unit could not be parsed; aborts processing of that unit only."""

    def __init__(self, message: str, unit: str | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.HIGH,
            context=unit,
            recoverable=False,
        )
        self.unit: str | None = unit


class AmbiguousConstruct(PylocError):
    """A construct that cannot be classified confidently, e.g. a concatenated literal."""

    def __init__(self, message: str, unit: str | None = None, line: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.AMBIGUOUS,
            severity=ErrorSeverity.LOW,
            context=unit,
            recoverable=True,
        )
        self.unit: str | None = unit
        self.line: int | None = line


class RecordFormatError(PylocError):
    """A persisted translation record is malformed."""

    def __init__(self, message: str, record: str | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.RECORD,
            severity=ErrorSeverity.HIGH,
            context=record,
            recoverable=False,
        )
        self.record: str | None = record


class ConsistencyViolation(PylocError):
    """A validator finding for one entry of one locale."""

    def __init__(self, locale: str, trigger: str, kind: str, detail: str) -> None:
        super().__init__(
            f"{locale}: '{trigger}'\t{kind}: {detail}",
            category=ErrorCategory.CONSISTENCY,
            severity=ErrorSeverity.MEDIUM,
            context=trigger,
            recoverable=True,
        )
        self.locale: str = locale
        self.trigger: str = trigger
        self.kind: str = kind
        self.detail: str = detail


class ConfigurationError(PylocError):
    """Configuration-related errors."""

    def __init__(self, message: str, context: object | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=False,
        )

"""
Cross-locale consistency checks.

Every non-default locale entry is compared with the default-locale entry
sharing its trigger. Findings are collected as ``ConsistencyViolation``
objects and logged one per failed check; a run never stops on the first
failure.

Usage Examples:
    >>> validator = ConsistencyValidator(store)
    >>> report = validator.check_all()
    >>> report.failed
    False
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

from .exceptions import ConsistencyViolation
from .markup import MarkupValidator
from .store import Entry, TranslationStore

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\d+\}")
MARKER_SYMBOL = "@"

NAME_MISMATCH = "fatally incorrect"
ID_MISMATCH = "id mismatch"
UNKNOWN_PLACEHOLDER = "unknown placeholder"
UNDERUSED_PLACEHOLDER = "not enough uses of placeholder"
OVERUSED_PLACEHOLDER = "too many uses of placeholder"
MARKUP_ERROR = "HTML error"
SYMBOL_MISMATCH = "symbols error"


@dataclass
class ValidationReport:
    """Outcome of a validation run."""

    violations: list[ConsistencyViolation] = field(default_factory=list)
    entries_checked: int = 0
    locales: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.violations)

    def extend(self, other: ValidationReport) -> None:
        self.violations.extend(other.violations)
        self.entries_checked += other.entries_checked
        self.locales.extend(other.locales)


def check_placeholders(default: str, custom: str) -> list[tuple[str, str]]:
    """
    Compare ordinal ``{n}`` placeholders of two strings.

    Args:
        default: Default-locale text
        custom: Translated text

    Returns:
        ``(kind, token)`` pairs, one per offending placeholder token
    """
    expected = Counter(PLACEHOLDER_PATTERN.findall(default))
    found = Counter(PLACEHOLDER_PATTERN.findall(custom))

    problems: list[tuple[str, str]] = []
    for token in found:
        if token not in expected:
            problems.append((UNKNOWN_PLACEHOLDER, token))
    for token, count in expected.items():
        used = found.get(token, 0)
        if used < count:
            problems.append((UNDERUSED_PLACEHOLDER, token))
        elif used > count:
            problems.append((OVERUSED_PLACEHOLDER, token))
    return problems


def check_symbols(default: str, custom: str, symbol: str = MARKER_SYMBOL) -> str | None:
    """Return an error message when ``symbol`` occurs a different number of times."""
    expected = default.count(symbol)
    found = custom.count(symbol)
    if expected != found:
        return f"unexpected number of {symbol}'s (should be {expected}, got {found})"
    return None


class ConsistencyValidator:
    """Validate the locales of a loaded store against its default locale."""

    def __init__(self, store: TranslationStore, markup: MarkupValidator | None = None) -> None:
        self.store: TranslationStore = store
        self.markup: MarkupValidator = markup or MarkupValidator()

    def check_entry(
        self, locale: str, key: str, default: Entry | None, entry: Entry
    ) -> list[ConsistencyViolation]:
        """
        Run every check for one entry of a non-default locale.

        Args:
            locale: Locale of ``entry``
            key: Key the entry is stored under
            default: Default-locale entry for ``key``, if any
            entry: Entry under test

        Returns:
            Violations found, in check order
        """
        def violation(kind: str, detail: str) -> ConsistencyViolation:
            return ConsistencyViolation(locale, key, kind, detail)

        if key != entry.trigger:
            return [violation(NAME_MISMATCH, f"stored under a key that differs from its name '{entry.trigger}'")]

        if default is None:
            return [violation(ID_MISMATCH, f"missing from default locale {self.store.default_locale}")]
        if default.id != entry.id:
            return [
                violation(
                    ID_MISMATCH,
                    f"has id {entry.id}, default locale {self.store.default_locale} has {default.id}",
                )
            ]

        if default.value == entry.value or not entry.value:
            # same text, or not translated yet: lookups fall back to the default
            return []

        violations: list[ConsistencyViolation] = []
        for kind, token in check_placeholders(default.value, entry.value):
            violations.append(violation(kind, token))

        residual = self.markup.regressions(default.value, entry.value)
        if len(residual) == 1:
            violations.append(violation(MARKUP_ERROR, f"html error in custom string: {residual[0]}"))
        elif residual:
            violations.append(violation(MARKUP_ERROR, f"{len(residual)} html errors in custom string"))

        symbols = check_symbols(default.value, entry.value)
        if symbols is not None:
            violations.append(violation(SYMBOL_MISMATCH, symbols))

        return violations

    def check_locale(self, locale: str) -> ValidationReport:
        """Check every entry of every module of one locale."""
        report = ValidationReport(locales=[locale])
        if locale == self.store.default_locale:
            return report

        for module in self.store.modules(locale):
            for key, entry in self.store.entries(locale, module).items():
                default = self.store.entry(self.store.default_locale, key)
                found = self.check_entry(locale, key, default, entry)
                for finding in found:
                    logger.error(str(finding))
                report.violations.extend(found)
                report.entries_checked += 1

        logger.info(
            f"Checked {report.entries_checked} entries for {locale}: "
            f"{len(report.violations)} problems"
        )
        return report

    def check_all(self) -> ValidationReport:
        """Check every known non-default locale."""
        report = ValidationReport()
        for locale in self.store.locales():
            if locale == self.store.default_locale:
                continue
            report.extend(self.check_locale(locale))
        return report

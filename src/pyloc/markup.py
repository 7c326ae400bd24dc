"""
Inline markup validation for translated strings.

Translations may only use a small set of inline tags. ``MarkupValidator``
parses a string, checks every tag and attribute against the allow-list and
tracks open tags so that unclosed and unopened tags are reported too.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from html.parser import HTMLParser
from typing import override


class MarkupErrorReason(Enum):
    """Kinds of markup errors."""

    INVALID_TAG = "invalid tag"
    INVALID_ATTRIBUTE = "invalid attribute"
    UNCLOSED_TAG = "unclosed tag"
    UNOPENED_TAG = "closing tag without opening tag"


@dataclass(frozen=True)
class MarkupError:
    """One markup problem found in a string."""

    reason: MarkupErrorReason
    tag: str
    attribute: str | None = None

    @override
    def __str__(self) -> str:
        if self.attribute:
            return f"{self.reason.value} '{self.attribute}' on <{self.tag}>"
        return f"{self.reason.value} <{self.tag}>"


# tag name -> allowed attribute names
DEFAULT_ALLOWED_TAGS: dict[str, frozenset[str]] = {
    "b": frozenset(),
    "strong": frozenset(),
    "i": frozenset(),
    "em": frozenset(),
    "u": frozenset(),
    "ins": frozenset(),
    "s": frozenset(),
    "strike": frozenset(),
    "del": frozenset(),
    "a": frozenset({"href"}),
    "code": frozenset({"class"}),
    "pre": frozenset(),
}


class _TagCollector(HTMLParser):
    def __init__(self, allowed: Mapping[str, frozenset[str]]) -> None:
        super().__init__(convert_charrefs=True)
        self.allowed: Mapping[str, frozenset[str]] = allowed
        self.errors: list[MarkupError] = []
        self.open_tags: list[str] = []

    @override
    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag not in self.allowed:
            self.errors.append(MarkupError(MarkupErrorReason.INVALID_TAG, tag))
            return
        for name, _value in attrs:
            if name not in self.allowed[tag]:
                self.errors.append(MarkupError(MarkupErrorReason.INVALID_ATTRIBUTE, tag, name))
        self.open_tags.append(tag)

    @override
    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag not in self.allowed:
            self.errors.append(MarkupError(MarkupErrorReason.INVALID_TAG, tag))
            return
        for name, _value in attrs:
            if name not in self.allowed[tag]:
                self.errors.append(MarkupError(MarkupErrorReason.INVALID_ATTRIBUTE, tag, name))

    @override
    def handle_endtag(self, tag: str) -> None:
        if tag not in self.allowed:
            self.errors.append(MarkupError(MarkupErrorReason.INVALID_TAG, tag))
            return
        if tag not in self.open_tags:
            self.errors.append(MarkupError(MarkupErrorReason.UNOPENED_TAG, tag))
            return
        # everything opened after the matching tag was left unclosed
        while self.open_tags:
            current = self.open_tags.pop()
            if current == tag:
                break
            self.errors.append(MarkupError(MarkupErrorReason.UNCLOSED_TAG, current))

    def finish(self) -> list[MarkupError]:
        self.close()
        for tag in reversed(self.open_tags):
            self.errors.append(MarkupError(MarkupErrorReason.UNCLOSED_TAG, tag))
        self.open_tags.clear()
        return self.errors


class MarkupValidator:
    """Validate strings against an allow-list of inline markup tags."""

    def __init__(self, allowed_tags: Mapping[str, frozenset[str]] | None = None) -> None:
        self.allowed_tags: Mapping[str, frozenset[str]] = (
            allowed_tags if allowed_tags is not None else DEFAULT_ALLOWED_TAGS
        )

    def validate(self, text: str) -> list[MarkupError]:
        """Return every markup error found in ``text``, in document order."""
        collector = _TagCollector(self.allowed_tags)
        collector.feed(text)
        return collector.finish()

    def regressions(self, default: str, custom: str) -> list[MarkupError]:
        """
        Return the markup errors of ``custom`` that ``default`` does not share.

        Errors of a reason that the default string already produces at least
        as often are inherited from the source text and are not regressions.

        Args:
            default: Default-locale text
            custom: Translated text

        Returns:
            Errors of ``custom`` in excess of those of ``default``
        """
        errors = self.validate(custom)
        if not errors:
            return []

        inherited = Counter(error.reason for error in self.validate(default))
        residual: list[MarkupError] = []
        for error in errors:
            if inherited[error.reason] > 0:
                inherited[error.reason] -= 1
                continue
            residual.append(error)
        return residual

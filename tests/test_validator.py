"""Tests for the consistency validator."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from pyloc.store import Entry, TranslationStore
from pyloc.validator import (
    ID_MISMATCH,
    MARKUP_ERROR,
    NAME_MISMATCH,
    OVERUSED_PLACEHOLDER,
    SYMBOL_MISMATCH,
    UNDERUSED_PLACEHOLDER,
    UNKNOWN_PLACEHOLDER,
    ConsistencyValidator,
    check_placeholders,
    check_symbols,
)

MODULE = "app/main.py"


class TestPlaceholderCheck:
    """Test cases for ordinal placeholder checks."""

    def test_matching_placeholders(self) -> None:
        """Test that reordered placeholders are fine."""
        assert check_placeholders("{0} likes {1}", "{1} est aimé par {0}") == []

    def test_under_and_over_used(self) -> None:
        """Test one violation per offending token."""
        problems = check_placeholders("{0}{1}", "{0}{0}")
        assert (UNDERUSED_PLACEHOLDER, "{1}") in problems
        assert (OVERUSED_PLACEHOLDER, "{0}") in problems
        assert len(problems) == 2

    def test_unknown_placeholder(self) -> None:
        """Test that a placeholder missing from the default is unknown."""
        assert check_placeholders("{0}", "{0} {2}") == [(UNKNOWN_PLACEHOLDER, "{2}")]

    def test_named_braces_are_not_placeholders(self) -> None:
        """Test that only digit placeholders are compared."""
        assert check_placeholders("{name}", "{other}") == []


class TestSymbolCheck:
    """Test cases for the marker symbol count."""

    def test_same_count(self) -> None:
        assert check_symbols("mail @admin", "écrire à @admin") is None

    def test_different_count(self) -> None:
        message = check_symbols("@a @b", "@a")
        assert message == "unexpected number of @'s (should be 2, got 1)"


class TestCheckEntry:
    """Test cases for checking one entry."""

    @pytest.fixture
    def validator(self, store: TranslationStore) -> ConsistencyValidator:
        return ConsistencyValidator(store)

    def test_name_mismatch_is_fatal(self, validator: ConsistencyValidator) -> None:
        """Test that a key/name mismatch stops all other checks."""
        default = Entry(0, "k", "{0}")
        entry = Entry(0, "other", "no placeholders @")
        found = validator.check_entry("fr", "k", default, entry)
        assert [v.kind for v in found] == [NAME_MISMATCH]

    def test_id_mismatch(self, validator: ConsistencyValidator) -> None:
        """Test that a differing id is reported and the entry skipped."""
        found = validator.check_entry("fr", "k", Entry(0, "k", "{0}"), Entry(1, "k", "x"))
        assert [v.kind for v in found] == [ID_MISMATCH]

    def test_missing_default(self, validator: ConsistencyValidator) -> None:
        """Test that an entry unknown to the default locale is reported."""
        found = validator.check_entry("fr", "k", None, Entry(0, "k", "x"))
        assert [v.kind for v in found] == [ID_MISMATCH]

    def test_equal_and_untranslated_are_skipped(self, validator: ConsistencyValidator) -> None:
        """Test that identical and empty values are not checked."""
        default = Entry(0, "k", "<b>{0}")
        assert validator.check_entry("fr", "k", default, Entry(0, "k", "<b>{0}")) == []
        assert validator.check_entry("fr", "k", default, Entry(0, "k", "", "<b>{0}")) == []

    def test_every_problem_is_reported(self, validator: ConsistencyValidator) -> None:
        """Test that the checks do not short-circuit."""
        default = Entry(0, "k", "<b>{0}</b> @x")
        entry = Entry(0, "k", "<b>{1}")
        kinds = [v.kind for v in validator.check_entry("fr", "k", default, entry)]
        assert kinds == [UNKNOWN_PLACEHOLDER, UNDERUSED_PLACEHOLDER, MARKUP_ERROR, SYMBOL_MISMATCH]

    def test_markup_detail(self, validator: ConsistencyValidator) -> None:
        """Test the message of single and multiple markup errors."""
        default = Entry(0, "k", "plain")
        single = validator.check_entry("fr", "k", default, Entry(0, "k", "<b>x"))
        assert single[0].detail == "html error in custom string: unclosed tag <b>"

        several = validator.check_entry("fr", "k", default, Entry(0, "k", "<b><i>x"))
        assert several[0].detail == "2 html errors in custom string"

    def test_violation_message(self, validator: ConsistencyValidator) -> None:
        """Test the rendered violation message."""
        found = validator.check_entry("fr", "k", Entry(0, "k", "a @"), Entry(0, "k", "b"))
        assert str(found[0]) == "fr: 'k'\tsymbols error: unexpected number of @'s (should be 1, got 0)"


class TestCheckLocales:
    """Test cases for checking whole locales."""

    @pytest.fixture
    def populated(self, store: TranslationStore, write_rows: Callable[..., Path]) -> TranslationStore:
        _ = write_rows(
            "en-GB",
            MODULE,
            [(0, "app/main.py:0", "Hello {0}", ""), (1, "app/main.py:1", "Bye", "")],
        )
        _ = write_rows(
            "fr",
            MODULE,
            [(0, "app/main.py:0", "Bonjour", "Hello {0}"), (1, "app/main.py:1", "", "Bye")],
        )
        _ = write_rows("de", MODULE, [(0, "app/main.py:0", "Hallo {0}", ""), (1, "app/main.py:1", "Tschüss", "")])
        for locale in ("en-GB", "fr", "de"):
            _ = store.load_all(locale)
        return store

    def test_check_locale(self, populated: TranslationStore) -> None:
        """Test that every entry of a locale is checked."""
        report = ConsistencyValidator(populated).check_locale("fr")
        assert report.entries_checked == 2
        assert report.failed
        assert [(v.trigger, v.kind) for v in report.violations] == [("app/main.py:0", UNDERUSED_PLACEHOLDER)]

    def test_check_default_locale_is_a_no_op(self, populated: TranslationStore) -> None:
        """Test that the default locale is never compared with itself."""
        report = ConsistencyValidator(populated).check_locale("en-GB")
        assert report.entries_checked == 0
        assert not report.failed

    def test_check_all(self, populated: TranslationStore) -> None:
        """Test that check_all visits every non-default locale."""
        report = ConsistencyValidator(populated).check_all()
        assert sorted(report.locales) == ["de", "fr"]
        assert report.entries_checked == 4
        assert len(report.violations) == 1

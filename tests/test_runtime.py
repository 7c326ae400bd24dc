"""Tests for the runtime lookup API used by rewritten code."""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Callable
from pathlib import Path

import pytest

import pyloc
from pyloc.store import TranslationStore

MODULE = "app/main.py"


@pytest.fixture
def translated(runtime: TranslationStore, write_rows: Callable[..., Path]) -> TranslationStore:
    _ = write_rows(
        "en-GB",
        MODULE,
        [(0, "greet", "Hello", ""), (1, "app/main.py:1", "hi {0}", ""), (2, "app/main.py:2", "Bye", "")],
    )
    _ = write_rows("fr", MODULE, [(0, "greet", "", "Hello"), (1, "app/main.py:1", "salut {0}", "hi {0}")])
    pyloc.load(MODULE)
    return runtime


class TestLookups:
    """Test cases for tr() and trf()."""

    def test_fallback_lookup(self, translated: TranslationStore) -> None:
        """Test that an untranslated entry resolves to the default text."""
        assert pyloc.tr("fr", "greet") == "Hello"

    def test_translated_lookup(self, translated: TranslationStore) -> None:
        assert pyloc.trf("fr", "app/main.py:1", {"0": "Marie"}) == "salut Marie"

    def test_placeholder_round_trip(self, translated: TranslationStore) -> None:
        """Test substitution into the default text."""
        assert pyloc.trf("en-GB", "app/main.py:1", {"0": "x"}) == "hi x"

    def test_unknown_trigger(self, translated: TranslationStore) -> None:
        """Test that unknown triggers never raise."""
        assert pyloc.tr("fr", "nope") == ""

    def test_languages(self, translated: TranslationStore) -> None:
        assert pyloc.languages() == ["en-GB", "fr"]
        assert pyloc.is_supported("fr")
        assert not pyloc.is_supported("de")


class TestLoading:
    """Test cases for load()."""

    def test_load_is_idempotent(
        self, runtime: TranslationStore, write_rows: Callable[..., Path]
    ) -> None:
        """Test that a module is read from disk only once."""
        path = write_rows("en-GB", MODULE, [(0, "greet", "Hello", "")])
        pyloc.load(MODULE)
        _ = path.write_text("<broken", encoding="utf-8")

        pyloc.load(MODULE)

        assert pyloc.tr("en-GB", "greet") == "Hello"

    def test_malformed_record_is_logged(
        self,
        runtime: TranslationStore,
        translations_dir: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that a broken record does not break the host program."""
        locale_dir = translations_dir / "en-GB" / "app"
        locale_dir.mkdir(parents=True)
        _ = (locale_dir / "main.xml").write_text("<broken", encoding="utf-8")

        with caplog.at_level(logging.ERROR, logger="pyloc.runtime"):
            pyloc.load(MODULE)

        assert pyloc.tr("en-GB", "greet") == ""
        assert any("Failed to load translations" in record.getMessage() for record in caplog.records)

    def test_configure_resets_loaded_modules(
        self, runtime: TranslationStore, translations_dir: Path, write_rows: Callable[..., Path]
    ) -> None:
        """Test that configure() starts from an empty store."""
        _ = write_rows("en-GB", MODULE, [(0, "greet", "Hello", "")])
        pyloc.load(MODULE)

        store = pyloc.configure(translations_dir, "en-GB")
        assert pyloc.get_store() is store
        assert pyloc.tr("en-GB", "greet") == ""

        pyloc.load(MODULE)
        assert pyloc.tr("en-GB", "greet") == "Hello"


class TestMarkers:
    """Test cases for add() and addf() before extraction."""

    def test_add_returns_text(self, runtime: TranslationStore, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="pyloc.runtime"):
            assert pyloc.add("Hello") == "Hello"
        assert "unloaded translation string for add()" in caplog.text

    def test_addf_formats(self, runtime: TranslationStore) -> None:
        assert pyloc.addf("%d files in %s", 3, "docs") == "3 files in docs"


class TestActiveLocale:
    """Test cases for the context-local active locale."""

    def test_defaults_to_default_locale(self, runtime: TranslationStore) -> None:
        assert pyloc.get_lang() == "en-GB"

    def test_set_and_reset(self, runtime: TranslationStore) -> None:
        pyloc.set_lang("fr")
        assert pyloc.get_lang() == "fr"
        pyloc.set_lang(None)
        assert pyloc.get_lang() == "en-GB"

    def test_locale_is_context_local(self, runtime: TranslationStore) -> None:
        """Test that a locale set in another context does not leak."""

        def handler() -> str:
            pyloc.set_lang("de")
            return pyloc.get_lang()

        context = contextvars.copy_context()
        assert context.run(handler) == "de"
        assert pyloc.get_lang() == "en-GB"

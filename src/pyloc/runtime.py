"""
Runtime lookup API used by rewritten code.

Rewritten modules import ``pyloc`` and call ``pyloc.load("<module>")`` once at
import time, then resolve their strings with ``pyloc.tr(lang, trigger)`` or
``pyloc.trf(lang, trigger, {"0": value})``. The active locale of the current
thread or task is held in a context variable.

Usage Examples:
    >>> import pyloc
    >>> pyloc.configure(Path("trans"), "en-GB")
    >>> pyloc.load("app/main.py")
    >>> pyloc.set_lang("fr")
    >>> pyloc.tr(pyloc.get_lang(), "app/main.py:0")
    'Bonjour'
"""

from __future__ import annotations

import logging
import threading
from contextvars import ContextVar
from pathlib import Path

from .exceptions import RecordFormatError
from .store import TranslationStore

logger = logging.getLogger(__name__)

# Names of the runtime functions emitted by the rewriter
LOOKUP = "tr"
LOOKUP_FORMATTED = "trf"
ADD = "add"
ADDF = "addf"
LOAD = "load"

DEFAULT_TRANSLATIONS_DIR = Path("trans")
DEFAULT_LOCALE = "en-GB"

_store: TranslationStore = TranslationStore(DEFAULT_TRANSLATIONS_DIR, DEFAULT_LOCALE)
_loaded: set[str] = set()
_state_lock = threading.Lock()
_current_lang: ContextVar[str | None] = ContextVar("pyloc_lang", default=None)


def configure(translations_dir: Path | str, default_locale: str = DEFAULT_LOCALE) -> TranslationStore:
    """
    Point the runtime at a translations directory.

    Previously loaded modules are forgotten and have to be loaded again.

    Returns:
        The runtime's new store
    """
    global _store
    with _state_lock:
        _store = TranslationStore(Path(translations_dir), default_locale)
        _loaded.clear()
    logger.debug(f"Runtime configured for {translations_dir} (default locale {default_locale})")
    return _store


def get_store() -> TranslationStore:
    return _store


def load(module: str) -> None:
    """
    Load a module's translations for every locale, once per process.

    Malformed records are logged and otherwise ignored; lookups then fall
    back to the default locale or to an empty string.
    """
    with _state_lock:
        if module in _loaded:
            return
        _loaded.add(module)
        store = _store

    try:
        _ = store.load(module)
    except RecordFormatError as e:
        logger.error(f"Failed to load translations for {module}: {e}")


def tr(lang: str, trigger: str) -> str:
    """Translate ``trigger`` into ``lang``, falling back to the default locale."""
    return _store.lookup(lang, trigger)


def trf(lang: str, trigger: str, substitutions: dict[str, str]) -> str:
    """Translate ``trigger`` into ``lang`` and fill its ``{key}`` placeholders."""
    return _store.lookup_formatted(lang, trigger, substitutions)


def add(text: str) -> str:
    """
    Mark ``text`` as translatable without translating it.

    The next extraction run replaces the call by a lookup; until then the
    text is returned as is.
    """
    logger.warning("unloaded translation string for add()")
    return text


def addf(text: str, *args: object) -> str:
    """Format variant of :func:`add` using printf-style ``%`` formatting."""
    logger.warning("unloaded translation string for addf()")
    return text % args


def get_lang() -> str:
    """Active locale of the current context, or the default locale."""
    lang = _current_lang.get()
    return lang if lang is not None else _store.default_locale


def set_lang(lang: str | None) -> None:
    """Set the active locale of the current context; None resets it to the default."""
    _ = _current_lang.set(lang)


def languages() -> list[str]:
    """Locales that have at least one loaded module."""
    store = _store
    return [locale for locale in store.locales() if store.modules(locale)]


def is_supported(lang: str) -> bool:
    return bool(_store.modules(lang))

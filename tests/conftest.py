"""
Shared test fixtures for pyloc tests.

Every fixture works inside pytest's ``tmp_path`` so that tests never touch a
real translations directory.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

import pyloc
from pyloc.config.schema import PylocConfig
from pyloc.records import Record, Row, record_path, write_record
from pyloc.source import SourceUnit, parse_source
from pyloc.store import TranslationStore

DEFAULT_LOCALE = "en-GB"


@pytest.fixture
def translations_dir(tmp_path: Path) -> Path:
    """Root directory for translation records of one test."""
    return tmp_path / "trans"


@pytest.fixture
def store(translations_dir: Path) -> TranslationStore:
    """Empty translation store backed by ``translations_dir``."""
    return TranslationStore(translations_dir, DEFAULT_LOCALE)


@pytest.fixture
def config(translations_dir: Path) -> PylocConfig:
    """Configuration registering ``reply`` and its format variant ``replyf``."""
    return PylocConfig(
        funcs=["reply"],
        fmt_funcs=["replyf"],
        translations_dir=translations_dir,
    )


@pytest.fixture
def make_unit() -> Callable[[str, str], SourceUnit]:
    """Factory parsing source text into a unit named ``app/main.py`` by default."""

    def factory(source: str, name: str = "app/main.py") -> SourceUnit:
        return parse_source(source, name)

    return factory


@pytest.fixture
def write_rows(translations_dir: Path) -> Callable[..., Path]:
    """
    Factory writing one record to disk.

    Rows are given as ``(id, name, value, comment)`` tuples.
    """

    def factory(
        locale: str,
        module: str,
        rows: list[tuple[int, str, str, str]],
        counter: int | None = None,
    ) -> Path:
        record = Record(
            rows=[Row(id=row_id, name=name, value=value, comment=comment) for row_id, name, value, comment in rows],
            counter=counter if counter is not None else len(rows),
        )
        path = record_path(translations_dir, locale, module)
        write_record(path, record)
        return path

    return factory


@pytest.fixture
def runtime(translations_dir: Path) -> Generator[TranslationStore, None, None]:
    """Point the runtime at ``translations_dir`` and reset the active locale afterwards."""
    store = pyloc.configure(translations_dir, DEFAULT_LOCALE)
    yield store
    pyloc.set_lang(None)
    _ = pyloc.configure(Path("trans"), DEFAULT_LOCALE)

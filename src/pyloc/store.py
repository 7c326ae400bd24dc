"""
In-memory translation store.

The store maps ``locale -> module -> trigger -> Entry`` and keeps one
monotonic id counter per module. It is built once per run (or once per host
process for the runtime lookups) and passed explicitly to the components
that need it.

Usage Examples:
    >>> store = TranslationStore(Path("trans"), default_locale="en-GB")
    >>> store.load("app/main.py")
    >>> store.lookup("fr", "app/main.py:0")
    'Bonjour'
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from .exceptions import RecordFormatError
from .records import (
    RECORD_SUFFIX,
    Record,
    Row,
    module_from_record,
    read_record,
    record_path,
    serialize_record,
    write_record,
    write_serialized,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY_PATTERN = re.compile(r"\{([^{}]+)\}")

ModuleEntries = dict[str, "Entry"]


@dataclass(frozen=True)
class Entry:
    """One translatable string of one locale."""

    id: int
    trigger: str
    value: str = ""
    comment: str = ""

    def untranslated(self) -> Entry:
        """Return the comment-only copy seeded into locales lacking this entry."""
        return Entry(id=self.id, trigger=self.trigger, value="", comment=self.value)

    @classmethod
    def from_row(cls, row: Row) -> Entry:
        return cls(id=row.id, trigger=row.name, value=row.value, comment=row.comment)

    def to_row(self) -> Row:
        return Row(id=self.id, name=self.trigger, value=self.value, comment=self.comment)


class TranslationStore:
    """
    Multi-locale store of translatable strings backed by per-module records.

    All maps are guarded by one store-wide lock; ``flush`` is additionally
    serialized per module so that independent modules can be flushed from
    different threads.
    """

    def __init__(self, translations_dir: Path, default_locale: str) -> None:
        self.translations_dir: Path = translations_dir
        self.default_locale: str = default_locale
        self._data: dict[str, dict[str, ModuleEntries]] = {}
        self._index: dict[str, dict[str, Entry]] = {}
        self._counters: dict[str, int] = {}
        self._lock: threading.RLock = threading.RLock()
        self._module_locks: dict[str, threading.RLock] = {}

    def disk_locales(self) -> list[str]:
        """List locale directories present under the translations directory."""
        if not self.translations_dir.is_dir():
            return []
        return sorted(
            child.name
            for child in self.translations_dir.iterdir()
            if child.is_dir() and not child.name.startswith(".")
        )

    def locales(self) -> list[str]:
        """All known locales: the default one, loaded ones and those on disk."""
        with self._lock:
            known = {self.default_locale, *self._data.keys()}
        known.update(self.disk_locales())
        return sorted(known)

    def modules(self, locale: str) -> list[str]:
        with self._lock:
            return sorted(self._data.get(locale, {}).keys())

    def entries(self, locale: str, module: str) -> ModuleEntries:
        """Return a copy of a module's entries for a locale, in record order."""
        with self._lock:
            return dict(self._data.get(locale, {}).get(module, {}))

    def entry(self, locale: str, trigger: str) -> Entry | None:
        with self._lock:
            return self._index.get(locale, {}).get(trigger)

    def counter(self, module: str) -> int:
        with self._lock:
            return self._counters.get(module, 0)

    def load(self, module: str) -> int:
        """
        Load a module's records for every locale found on disk.

        Args:
            module: Module identifier

        Returns:
            Number of rows loaded across all locales

        Raises:
            RecordFormatError: If one of the module's records is malformed
        """
        total = 0
        for locale in self.disk_locales():
            total += self.load_locale_module(locale, module)
        logger.debug(f"Loaded {total} rows for module {module}, counter at {self.counter(module)}")
        return total

    def load_locale_module(self, locale: str, module: str) -> int:
        """
        Load the record of one (locale, module) pair.

        A missing record is treated as an empty module.

        Returns:
            Number of rows loaded

        Raises:
            RecordFormatError: If the record is malformed
        """
        record = read_record(record_path(self.translations_dir, locale, module))
        if record is None:
            return 0

        entries: ModuleEntries = {}
        for row in record.rows:
            if not row.name:
                logger.debug(f"Ignoring row {row.id} without a name in {locale}/{module}")
                continue
            if row.name in entries:
                logger.warning(f"Duplicate trigger '{row.name}' in {locale}/{module}; keeping the last row")
            entries[row.name] = Entry.from_row(row)

        highest = max((entry.id for entry in entries.values()), default=-1)
        count = max(record.counter, highest + 1)

        with self._lock:
            self._replace_module(locale, module, entries)
            if self._counters.get(module, 0) < count:
                self._counters[module] = count

        return len(entries)

    def load_all(self, locale: str) -> list[RecordFormatError]:
        """
        Load every module record under a locale.

        Malformed records do not stop the walk; they are returned so the
        caller can report them with the module they belong to.

        Returns:
            Errors raised by malformed records
        """
        errors: list[RecordFormatError] = []
        locale_dir = self.translations_dir / locale
        if not locale_dir.is_dir():
            logger.warning(f"No translations found for locale {locale} in {locale_dir}")
            return errors

        for path in sorted(locale_dir.rglob(f"*{RECORD_SUFFIX}")):
            module = module_from_record(locale_dir, path)
            try:
                _ = self.load_locale_module(locale, module)
            except RecordFormatError as e:
                logger.error(f"Failed to load {locale}/{module}: {e}")
                errors.append(e)

        logger.info(f"Loaded {len(self.modules(locale))} modules for locale {locale}")
        return errors

    def lookup(self, locale: str, trigger: str) -> str:
        """
        Resolve a trigger for a locale.

        Falls back to the default locale when the locale has no value, and to
        an empty string when the trigger is unknown. Never raises.
        """
        with self._lock:
            entry = self._index.get(locale, {}).get(trigger)
            if entry is not None and entry.value:
                return entry.value
            default = self._index.get(self.default_locale, {}).get(trigger)
        return default.value if default is not None else ""

    def lookup_formatted(self, locale: str, trigger: str, substitutions: Mapping[str, str]) -> str:
        """Resolve a trigger and fill its ``{key}`` placeholders from ``substitutions``."""
        text = self.lookup(locale, trigger)
        if not substitutions:
            return text
        return PLACEHOLDER_KEY_PATTERN.sub(
            lambda match: str(substitutions.get(match.group(1), match.group(0))), text
        )

    def next_id(self, module: str) -> int:
        """Return the module's next id and advance its counter."""
        with self._lock:
            value = self._counters.get(module, 0)
            self._counters[module] = value + 1
        return value

    @contextmanager
    def module_lock(self, module: str) -> Iterator[None]:
        """Hold the mutual-exclusion lock of one module."""
        with self._lock:
            lock = self._module_locks.setdefault(module, threading.RLock())
        with lock:
            yield

    def flush(self, module: str, new_entries: Mapping[str, Mapping[str, Entry]]) -> None:
        """
        Replace a module's entries for every locale and persist them.

        Locales that currently hold the module but are absent from
        ``new_entries`` end up with an empty entry set. Other modules are
        never touched.

        Args:
            module: Module identifier
            new_entries: ``locale -> trigger -> Entry`` computed by a rewrite pass

        Raises:
            RecordFormatError: If an entry cannot be stored as XML; nothing is written
            OSError: If a record cannot be written
        """
        with self.module_lock(module):
            with self._lock:
                locales = set(new_entries.keys())
                locales.update(
                    locale for locale, modules in self._data.items() if module in modules
                )
                counter = self._counters.get(module, 0)

            # every locale is serialized before the first write
            pending: list[tuple[str, ModuleEntries, bytes]] = []
            for locale in sorted(locales):
                entries = dict(new_entries.get(locale, {}))
                record = Record(
                    rows=[entry.to_row() for entry in entries.values()],
                    counter=counter,
                )
                pending.append((locale, entries, serialize_record(record)))

            for locale, entries, content in pending:
                write_serialized(record_path(self.translations_dir, locale, module), content)
                with self._lock:
                    self._replace_module(locale, module, entries)

        logger.info(f"Flushed module {module} for {len(locales)} locales")

    def set_entries(self, locale: str, module: str, entries: Mapping[str, Entry]) -> None:
        """Replace a module's in-memory entries for one locale without persisting."""
        with self._lock:
            self._replace_module(locale, module, dict(entries))
            highest = max((entry.id for entry in entries.values()), default=-1)
            if self._counters.get(module, 0) <= highest:
                self._counters[module] = highest + 1

    def create_locale(self, locale: str) -> int:
        """
        Clone every default-locale record into a new locale.

        Values move into comments and are emptied, giving translators the
        default text as context.

        Returns:
            Number of records written
        """
        source_dir = self.translations_dir / self.default_locale
        if not source_dir.is_dir():
            logger.warning(f"No records for default locale {self.default_locale} in {source_dir}")
            return 0

        written = 0
        for path in sorted(source_dir.rglob(f"*{RECORD_SUFFIX}")):
            record = read_record(path)
            if record is None:
                continue
            cloned = Record(
                rows=[replace(row, value="", comment=row.value) for row in record.rows],
                counter=record.counter,
            )
            target = self.translations_dir / locale / path.relative_to(source_dir)
            write_record(target, cloned)
            written += 1

        logger.info(f"Created locale {locale} from {self.default_locale} ({written} records)")
        return written

    def _replace_module(self, locale: str, module: str, entries: ModuleEntries) -> None:
        modules = self._data.setdefault(locale, {})
        index = self._index.setdefault(locale, {})
        for trigger in modules.get(module, {}):
            _ = index.pop(trigger, None)
        modules[module] = entries
        index.update(entries)

"""
Orchestration of pyloc runs.

``Locer`` ties the pieces together for the command line: it discovers source
units, runs the extractor or the rewriter over them, and drives locale
creation and consistency checks. Failures of one unit are logged and counted
in the run report; the run continues with the next unit.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from .config.schema import PylocConfig, validate_locale_tag
from .exceptions import ConfigurationError, RecordFormatError, StructuralParseError
from .extractor import ExtractionCounter, Extractor, Occurrence
from .rewriter import RewriteResult, Rewriter
from .source import SourceUnit, iter_source_files, read_unit
from .store import TranslationStore
from .validator import ConsistencyValidator, ValidationReport

logger = logging.getLogger(__name__)

ALL_LOCALES = "all"


@dataclass
class RunReport:
    """Counters of one run; a run fails when any error or violation was recorded."""

    units: int = 0
    entries: int = 0
    violations: int = 0
    errors: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def failed(self) -> bool:
        return bool(self.errors) or self.violations > 0

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def add_unit(self, entries: int) -> None:
        with self._lock:
            self.units += 1
            self.entries += entries

    def add_error(self, message: str) -> None:
        with self._lock:
            self.errors.append(message)

    def summary(self) -> str:
        return (
            f"{self.units} units, {self.entries} entries processed, "
            f"{len(self.errors)} errors, {self.violations} violations"
        )


class Locer:
    """Run pyloc operations against one configuration and one store."""

    def __init__(
        self,
        config: PylocConfig,
        store: TranslationStore | None = None,
        output: TextIO | None = None,
    ) -> None:
        self.config: PylocConfig = config
        self.store: TranslationStore = store or TranslationStore(
            config.translations_dir, config.default_locale
        )
        self.output: TextIO = output or sys.stdout
        self.counter: ExtractionCounter = ExtractionCounter()
        self.extractor: Extractor = Extractor(
            funcs=set(config.funcs), fmt_funcs=set(config.fmt_funcs), counter=self.counter
        )
        self.rewriter: Rewriter = Rewriter(self.store, config)
        self.report: RunReport = RunReport()
        self.checked: set[Path] = set()
        self._output_lock: threading.Lock = threading.Lock()
        self._checked_lock: threading.Lock = threading.Lock()

    def handle(self, paths: Sequence[Path], handler: Callable[[SourceUnit], None]) -> RunReport:
        """
        Apply ``handler`` to every source unit named by ``paths``.

        Directories are walked recursively. A unit is handled at most once per
        run. With more than one worker, units are handled on a thread pool.

        Raises:
            FileNotFoundError: If one of the paths does not exist
        """
        if not paths:
            logger.error("No input provided.")
            return self.report

        files = [path for path in iter_source_files(paths, set(self.config.exclude_dirs)) if self._claim(path)]

        if self.config.workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="pyloc") as executor:
                _ = list(executor.map(lambda path: self._handle_file(path, handler), files))
        else:
            for path in files:
                self._handle_file(path, handler)

        logger.info("the following have been checked:")
        for path in files:
            logger.info(f"  {path.as_posix()}")
        return self.report

    def _claim(self, path: Path) -> bool:
        real = path.resolve()
        with self._checked_lock:
            if real in self.checked:
                return False
            self.checked.add(real)
            return True

    def _handle_file(self, path: Path, handler: Callable[[SourceUnit], None]) -> None:
        name = path.as_posix()
        try:
            unit = read_unit(path, name)
            handler(unit)
        except StructuralParseError as e:
            logger.error(f"{name}: {e}")
            self.report.add_error(str(e))
        except RecordFormatError as e:
            logger.error(f"{name}: translation record error: {e}")
            self.report.add_error(str(e))
        except OSError as e:
            logger.error(f"{name}: {e}")
            self.report.add_error(f"{name}: {e}")

    def _emit(self, text: str) -> None:
        with self._output_lock:
            _ = self.output.write(text)
            self.output.flush()

    def inspect(self, unit: SourceUnit) -> list[Occurrence]:
        """List a unit's candidate literals without touching anything."""
        occurrences = self.extractor.inspect(unit)
        lines = [
            f"{occurrence.location}\t{occurrence.line}:{occurrence.column}\t{occurrence.raw}\n"
            for occurrence in occurrences
        ]
        self._emit("".join(lines))
        self.report.add_unit(len(occurrences))
        return occurrences

    def fix(self, unit: SourceUnit) -> RewriteResult:
        """
        Rewrite a unit and flush its module.

        With ``apply`` set, the source file is overwritten when the rewrite
        changed it; otherwise the rewritten source is printed.
        """
        result = self.rewriter.run(unit)
        if self.config.apply:
            if result.changed and unit.path is not None:
                unit.path.write_text(result.code, encoding="utf-8")
                logger.info(f"Rewrote {unit.name} ({result.rewrites} call sites)")
        else:
            self._emit(result.code)
        self.report.add_unit(result.entry_count)
        return result

    def create(self, locale: str) -> int:
        """
        Create a new locale from the default locale's records.

        Raises:
            ConfigurationError: If ``locale`` is not a known language code
        """
        try:
            locale = validate_locale_tag(locale)
        except ValueError as e:
            raise ConfigurationError(f"invalid language selected: {e}") from e
        return self.store.create_locale(locale)

    def check(self, locale: str = ALL_LOCALES) -> ValidationReport:
        """
        Validate one locale, or every locale, against the default locale.

        Malformed records are counted as errors; the remaining records are
        still checked.
        """
        validator = ConsistencyValidator(self.store)
        default = self.store.default_locale

        if locale == ALL_LOCALES:
            locales = self.store.disk_locales()
        else:
            locales = sorted({default, locale})

        for name in locales:
            for error in self.store.load_all(name):
                self.report.add_error(str(error))

        if locale == ALL_LOCALES:
            result = validator.check_all()
        else:
            result = validator.check_locale(locale)

        self.report.violations += len(result.violations)
        self.report.entries += result.entries_checked
        if result.failed:
            logger.error(f"error found for {locale}: {len(result.violations)} problems")
        return result

    def inspect_paths(self, paths: Iterable[Path]) -> RunReport:
        return self.handle(list(paths), self._inspect_unit)

    def extract_paths(self, paths: Iterable[Path]) -> RunReport:
        return self.handle(list(paths), self._fix_unit)

    def _inspect_unit(self, unit: SourceUnit) -> None:
        _ = self.inspect(unit)

    def _fix_unit(self, unit: SourceUnit) -> None:
        _ = self.fix(unit)


__all__ = ["ALL_LOCALES", "Locer", "RunReport"]

"""
Source units: discovery and parsing of Python files.

A source unit is one parsed Python file together with the module identifier
its translations are stored under.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

import libcst as cst

from .exceptions import StructuralParseError

logger = logging.getLogger(__name__)

# File patterns to include when walking directories
PYTHON_FILE_PATTERNS = ["*.py"]

# Directories to exclude when walking directories
EXCLUDED_DIRS = {
    "__pycache__",
    ".git",
    ".pytest_cache",
    "htmlcov",
    "node_modules",
    "venv",
    "env",
    ".venv",
    ".env",
}


@dataclass(frozen=True)
class SourceUnit:
    """A parsed source file."""

    name: str
    module: cst.Module
    path: Path | None = None


def parse_source(source: str, name: str, path: Path | None = None) -> SourceUnit:
    """
    Parse Python source text into a unit.

    Args:
        source: Source text
        name: Module identifier of the unit
        path: File the source was read from, if any

    Returns:
        Parsed unit

    Raises:
        StructuralParseError: If the source is not valid Python
    """
    try:
        module = cst.parse_module(source)
    except cst.ParserSyntaxError as e:
        raise StructuralParseError(f"Cannot parse {name}: {e}", unit=name) from e
    return SourceUnit(name=name, module=module, path=path)


def read_unit(path: Path, name: str | None = None) -> SourceUnit:
    """
    Read and parse one Python file.

    Raises:
        OSError: If the file cannot be read
        StructuralParseError: If the file is not valid UTF-8 Python source
    """
    unit_name = name if name is not None else path.as_posix()
    try:
        source = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise StructuralParseError(f"Cannot decode {unit_name}: {e}", unit=unit_name) from e
    return parse_source(source, unit_name, path)


def iter_source_files(paths: Iterable[Path], exclude_dirs: set[str] | None = None) -> Iterator[Path]:
    """
    Yield every Python file named by ``paths``, walking directories recursively.

    Files are yielded once even when reachable through several arguments.

    Raises:
        FileNotFoundError: If a path does not exist
    """
    if exclude_dirs is None:
        exclude_dirs = EXCLUDED_DIRS

    seen: set[Path] = set()
    for root in paths:
        if not root.exists():
            raise FileNotFoundError(f"No such file or directory: {root}")

        if root.is_file():
            candidates: Iterable[Path] = [root]
        else:
            logger.debug(f"Walking directory {root}")
            candidates = sorted(
                filepath
                for pattern in PYTHON_FILE_PATTERNS
                for filepath in root.rglob(pattern)
                if not any(part in exclude_dirs for part in filepath.relative_to(root).parts)
            )

        for filepath in candidates:
            real = filepath.resolve()
            if real in seen:
                continue
            seen.add(real)
            yield filepath

"""
Read-only inspection of string literals.

The extractor walks a parsed unit and yields every plain string literal that
is a candidate for translation, in traversal order. It only classifies
literals; deciding what to rewrite is left to the rewriter.

Usage Examples:
    >>> counter = ExtractionCounter()
    >>> extractor = Extractor(funcs={"reply"}, fmt_funcs={"replyf"}, counter=counter)
    >>> for occurrence in extractor.iter_literals(unit):
    ...     print(occurrence.location, occurrence.text)
    app/main.py:1 Hello there
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

import libcst as cst
from libcst.metadata import CodeRange, MetadataWrapper, PositionProvider

from .exceptions import AmbiguousConstruct
from .source import SourceUnit

logger = logging.getLogger(__name__)

STRING_NODES = (cst.SimpleString, cst.ConcatenatedString, cst.FormattedString)


class ExtractionCounter:
    """Thread-safe monotonic counter shared by every unit of one run."""

    def __init__(self, start: int = 0) -> None:
        self._value: int = start
        self._lock: threading.Lock = threading.Lock()

    def next(self) -> int:
        """Increment the counter and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass(frozen=True)
class Occurrence:
    """One extracted literal."""

    location: str
    text: str
    line: int
    column: int
    raw: str


def docstring_node(node: cst.Module | cst.ClassDef | cst.FunctionDef) -> cst.BaseExpression | None:
    """Return the expression node holding the docstring of a module, class or function."""
    body = node.body if isinstance(node, cst.Module) else node.body.body
    if not body:
        return None
    first = body[0]
    if isinstance(first, cst.SimpleStatementLine):
        if not first.body:
            return None
        first = first.body[0]
    if isinstance(first, cst.Expr) and isinstance(first.value, (cst.SimpleString, cst.ConcatenatedString)):
        return first.value
    return None


def is_string_expression(node: cst.CSTNode) -> bool:
    """Whether ``node`` is a string literal of any kind."""
    return isinstance(node, STRING_NODES)


def concatenation_operands(node: cst.BinaryOperation) -> list[cst.BaseExpression]:
    """Flatten a chain of ``+`` operations into its operands."""
    operands: list[cst.BaseExpression] = []
    for side in (node.left, node.right):
        if isinstance(side, cst.BinaryOperation) and isinstance(side.operator, cst.Add):
            operands.extend(concatenation_operands(side))
        else:
            operands.append(side)
    return operands


def is_concatenation(node: cst.CSTNode) -> bool:
    """Whether ``node`` is a ``+`` chain with at least one string literal operand."""
    if not (isinstance(node, cst.BinaryOperation) and isinstance(node.operator, cst.Add)):
        return False
    return any(is_string_expression(operand) for operand in concatenation_operands(node))


class Extractor:
    """Classify string literals of source units."""

    def __init__(
        self,
        funcs: set[str] | None = None,
        fmt_funcs: set[str] | None = None,
        counter: ExtractionCounter | None = None,
    ) -> None:
        self.funcs: set[str] = funcs or set()
        self.fmt_funcs: set[str] = fmt_funcs or set()
        self.counter: ExtractionCounter = counter or ExtractionCounter()

    def inspect(self, unit: SourceUnit) -> list[Occurrence]:
        """Collect every occurrence of a unit."""
        occurrences = list(self.iter_literals(unit))
        logger.info(f"Extracted {len(occurrences)} strings from {unit.name}")
        return occurrences

    def iter_literals(self, unit: SourceUnit) -> Iterator[Occurrence]:
        """
        Lazily yield the candidate literals of a unit in traversal order.

        Args:
            unit: Parsed source unit

        Yields:
            One occurrence per extractable literal
        """
        wrapper = MetadataWrapper(unit.module)
        positions = wrapper.resolve(PositionProvider)
        yield from self._walk(wrapper.module, unit, positions, set())

    def _walk(
        self,
        node: cst.CSTNode,
        unit: SourceUnit,
        positions: Mapping[cst.CSTNode, CodeRange],
        docstrings: set[int],
    ) -> Iterator[Occurrence]:
        if isinstance(node, (cst.Module, cst.ClassDef, cst.FunctionDef)):
            docstring = docstring_node(node)
            if docstring is not None:
                docstrings.add(id(docstring))

        if isinstance(node, cst.FunctionDef):
            name = node.name.value
            line = positions[node].start.line
            if name in self.funcs or name in self.fmt_funcs:
                logger.debug(f"found a function in our list: {name} ({unit.name}:{line})")
            else:
                logger.debug(f"found a function: {name} ({unit.name}:{line})")

        elif isinstance(node, STRING_NODES) and id(node) in docstrings:
            logger.debug(f"ignoring docstring at {unit.name}:{positions[node].start.line}")
            return

        elif isinstance(node, cst.SimpleString):
            occurrence = self._handle_string(node, unit, positions)
            if occurrence is not None:
                yield occurrence
            return

        elif isinstance(node, cst.ConcatenatedString):
            self._report_ambiguous(node, unit, positions, "implicitly concatenated string")
            return

        elif isinstance(node, cst.FormattedString):
            logger.debug(f"ignoring f-string at {unit.name}:{positions[node].start.line}")
            return

        elif isinstance(node, cst.BinaryOperation) and is_concatenation(node):
            for operand in concatenation_operands(node):
                if is_string_expression(operand):
                    self._report_ambiguous(operand, unit, positions, "string in a binary concatenation")
                else:
                    yield from self._walk(operand, unit, positions, docstrings)
            return

        for child in node.children:
            yield from self._walk(child, unit, positions, docstrings)

    def _handle_string(
        self,
        node: cst.SimpleString,
        unit: SourceUnit,
        positions: Mapping[cst.CSTNode, CodeRange],
    ) -> Occurrence | None:
        start = positions[node].start
        value = node.evaluated_value
        if not isinstance(value, str):
            logger.debug(f"ignoring non-string literal at {unit.name}:{start.line}")
            return None
        if not value.strip():
            logger.debug(f"ignoring empty string at {unit.name}:{start.line}")
            return None

        logger.info(f"found: {node.value}")
        location = f"{unit.name}:{self.counter.next()}"
        return Occurrence(
            location=location,
            text=value,
            line=start.line,
            column=start.column,
            raw=node.value,
        )

    def _report_ambiguous(
        self,
        node: cst.CSTNode,
        unit: SourceUnit,
        positions: Mapping[cst.CSTNode, CodeRange],
        what: str,
    ) -> None:
        line = positions[node].start.line
        problem = AmbiguousConstruct(
            f"{unit.name}:{line}: skipping {what}; join the literals to make it translatable",
            unit=unit.name,
            line=line,
        )
        logger.warning(str(problem))

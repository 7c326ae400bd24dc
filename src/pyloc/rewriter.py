"""
Rewriting of translatable call sites.

The rewriter turns calls such as ``bot.reply("Hello")`` into
``bot.reply(pyloc.tr(lang, "app/main.py:0"))`` and records the original text
as a default-locale entry. It works on libcst trees, so the result is a new
tree and the untouched parts of the file keep their exact formatting.

Call sites are classified into four states:

- plain call: a configured plain or format function with a literal first
  argument; the literal gets a trigger and is replaced by a runtime lookup
- already migrated: ``pyloc.tr(...)``/``pyloc.trf(...)``; its trigger is kept,
  or collapsed into an earlier trigger with the same default text
- add call: ``pyloc.add(...)``/``pyloc.addf(...)``; rewritten like a plain call
- unmatched: left alone

After the traversal, functions containing new lookups get a locale binding
as their first statement, and the module gets the runtime import and a
``pyloc.load(<module>)`` initialization statement.

Usage Examples:
    >>> rewriter = Rewriter(store, config)
    >>> result = rewriter.run(unit)
    >>> print(result.code)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import override

import libcst as cst
from libcst.helpers import get_full_name_for_node

from .config.schema import PylocConfig
from .exceptions import AmbiguousConstruct
from .extractor import docstring_node, is_concatenation
from .logging_setup import TRACE
from .records import is_xml_compatible
from .runtime import ADD, ADDF, LOAD, LOOKUP, LOOKUP_FORMATTED
from .source import SourceUnit
from .store import Entry, TranslationStore

logger = logging.getLogger(__name__)

PRINTF_PATTERN = re.compile(
    r"%(?P<flags>[-+ #0]*)(?P<width>\d+)?(?:\.(?P<precision>\d+))?(?P<verb>[a-zA-Z%])"
)
SUPPORTED_VERBS = frozenset("sdivrxXoeEfFgG")
STRING_VERBS = frozenset("srv")
INTEGER_VERBS = frozenset("dixXo")

# builtin applied to a format argument before format(), as printf converts it
COERCIONS = {
    "r": "repr",
    **dict.fromkeys("sv", "str"),
    **dict.fromkeys(INTEGER_VERBS, "int"),
    **dict.fromkeys("eEfFgG", "float"),
}


class CallState(Enum):
    """Classification of a call site."""

    UNMATCHED = "unmatched"
    PLAIN_CALL = "plain call"
    ALREADY_MIGRATED = "already migrated"
    ADD_CALL = "add call"


@dataclass(frozen=True)
class FormatVerb:
    """One printf-style directive of a format string."""

    verb: str
    flags: str = ""
    width: str | None = None
    precision: str | None = None

    @property
    def is_simple(self) -> bool:
        return not (self.flags or self.width or self.precision)

    @property
    def coercion(self) -> str:
        """Name of the builtin converting an argument the way printf does."""
        return COERCIONS[self.verb]

    def format_spec(self) -> str:
        """
        Translate the directive into a ``format()`` specification.

        The specification applies to the coerced argument. printf right-aligns
        strings, ``format`` left-aligns them, so string directives with a
        width get an explicit ``>``.
        """
        is_string = self.verb in STRING_VERBS
        if "-" in self.flags:
            align = "<"
        elif is_string and self.width:
            align = ">"
        else:
            align = ""
        sign = ""
        alternate = ""
        zero = ""
        if not is_string:
            sign = "+" if "+" in self.flags else (" " if " " in self.flags else "")
            alternate = "#" if "#" in self.flags else ""
            zero = "0" if "0" in self.flags and not align else ""
        width = self.width or ""
        precision = f".{self.precision}" if self.precision is not None else ""
        kind = "" if is_string else ("d" if self.verb == "i" else self.verb)
        return f"{align}{sign}{alternate}{zero}{width}{precision}{kind}"


def convert_printf(text: str) -> tuple[str, list[FormatVerb]] | None:
    """
    Replace printf-style directives by ordinal ``{n}`` placeholders.

    ``%%`` becomes a literal percent sign.

    Args:
        text: Format string such as ``"Hello %s, you have %d items"``

    Returns:
        The template and its directives in order, or None if the string
        contains a directive that cannot be converted
    """
    parts: list[str] = []
    verbs: list[FormatVerb] = []
    position = 0
    while True:
        index = text.find("%", position)
        if index < 0:
            parts.append(text[position:])
            break
        parts.append(text[position:index])
        match = PRINTF_PATTERN.match(text, index)
        if match is None:
            return None
        verb = match.group("verb")
        if verb == "%":
            if match.group("flags") or match.group("width") or match.group("precision"):
                return None
            parts.append("%")
        elif verb in INTEGER_VERBS and match.group("precision") is not None:
            # "%.3d" pads with zeros, which format() has no spelling for
            return None
        elif verb in SUPPORTED_VERBS:
            parts.append("{" + str(len(verbs)) + "}")
            verbs.append(
                FormatVerb(
                    verb=verb,
                    flags=match.group("flags"),
                    width=match.group("width"),
                    precision=match.group("precision"),
                )
            )
        else:
            return None
        position = match.end()
    return "".join(parts), verbs


def quote(text: str) -> str:
    """Render ``text`` as a double-quoted Python string literal."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def literal_text(node: cst.BaseExpression) -> str | None:
    """Return the value of a plain (non-bytes) string literal, else None."""
    if isinstance(node, cst.SimpleString):
        value = node.evaluated_value
        if isinstance(value, str):
            return value
    return None


def callee_name(func: cst.BaseExpression) -> str | None:
    """Return the called name of ``name(...)`` or ``obj.name(...)``."""
    if isinstance(func, cst.Name):
        return func.value
    if isinstance(func, cst.Attribute):
        return func.attr.value
    return None


@dataclass
class _Scope:
    is_function: bool
    active: bool = False
    rewritten: bool = False


@dataclass
class RewriteResult:
    """Outcome of rewriting one unit."""

    unit: str
    original: str
    code: str
    rewrites: int
    entries: dict[str, dict[str, Entry]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.code != self.original

    @property
    def entry_count(self) -> int:
        return max((len(entries) for entries in self.entries.values()), default=0)


class RewriteTransformer(cst.CSTTransformer):
    """Single-use transformer holding the state of one rewrite pass over one unit."""

    def __init__(
        self,
        unit: SourceUnit,
        store: TranslationStore,
        config: PylocConfig,
        locales: Sequence[str],
    ) -> None:
        super().__init__()
        self.unit: SourceUnit = unit
        self.store: TranslationStore = store
        self.config: PylocConfig = config
        self.funcs: frozenset[str] = frozenset(config.funcs)
        self.fmt_funcs: frozenset[str] = frozenset(config.fmt_funcs)
        self.default_locale: str = store.default_locale
        self.entries: dict[str, dict[str, Entry]] = {locale: {} for locale in locales}
        _ = self.entries.setdefault(self.default_locale, {})
        # default-locale text -> canonical trigger for this pass
        self.dedup: dict[str, str] = {}
        self.scopes: list[_Scope] = []
        self.rewrites: int = 0
        self.needs_runtime: bool = False

    # -- scopes -------------------------------------------------------------

    @override
    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        self.scopes.append(_Scope(is_function=True))
        return True

    def visit_FunctionDef_body(self, node: cst.FunctionDef) -> None:
        self.scopes[-1].active = True

    def leave_FunctionDef_body(self, node: cst.FunctionDef) -> None:
        self.scopes[-1].active = False

    @override
    def leave_FunctionDef(
        self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef
    ) -> cst.FunctionDef:
        scope = self.scopes.pop()
        if scope.rewritten:
            return self._ensure_binding(updated_node)
        return updated_node

    @override
    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        self.scopes.append(_Scope(is_function=False))
        return True

    @override
    def leave_ClassDef(
        self, original_node: cst.ClassDef, updated_node: cst.ClassDef
    ) -> cst.ClassDef:
        _ = self.scopes.pop()
        return updated_node

    def _binding_scope(self) -> _Scope | None:
        """Innermost function body the current node executes in, if any."""
        for scope in reversed(self.scopes):
            if not scope.is_function:
                return None
            if scope.active:
                return scope
        return None

    # -- call sites ---------------------------------------------------------

    def classify(self, node: cst.Call) -> CallState:
        """Classify a call site."""
        name = callee_name(node.func)
        if name is None:
            return CallState.UNMATCHED
        if self._is_runtime_attribute(node.func):
            if name in (LOOKUP, LOOKUP_FORMATTED):
                return CallState.ALREADY_MIGRATED
            if name in (ADD, ADDF):
                return CallState.ADD_CALL
            return CallState.UNMATCHED
        if name in self.funcs or name in self.fmt_funcs:
            return CallState.PLAIN_CALL
        return CallState.UNMATCHED

    @override
    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call) -> cst.BaseExpression:
        state = self.classify(updated_node)
        match state:
            case CallState.PLAIN_CALL:
                return self._rewrite_plain(updated_node)
            case CallState.ALREADY_MIGRATED:
                return self._normalize_migrated(updated_node)
            case CallState.ADD_CALL:
                return self._rewrite_add(updated_node)
            case _:
                logger.log(TRACE, f"unhandled call to {callee_name(updated_node.func)} in {self.unit.name}")
                return updated_node

    def _rewrite_plain(self, node: cst.Call) -> cst.Call:
        name = callee_name(node.func)
        if not node.args:
            logger.debug(f"call to {name} without arguments in {self.unit.name}")
            return node

        first = node.args[0]
        if first.keyword is not None or first.star:
            logger.debug(f"call to {name} has no positional first argument in {self.unit.name}")
            return node

        text = literal_text(first.value)
        if text is None:
            if is_concatenation(first.value):
                self._report_ambiguous(f"binary expression instead of a string in call to {name}; join the literals")
            else:
                logger.debug(f"found something else in call to {name}: {type(first.value).__name__}")
            return node
        if not text.strip():
            logger.debug(f"ignoring empty string in call to {name} in {self.unit.name}")
            return node
        if not is_xml_compatible(text):
            self._report_ambiguous(f"string with control characters in call to {name} cannot be stored")
            return node

        logger.debug(f"found a string in funcname {name}: {text!r}")

        if name in self.fmt_funcs:
            converted = self._format_lookup(text, node.args[1:], str(name))
            if converted is None:
                return node
            lookup, rest = converted
            func = self._plain_counterpart(node.func)
        else:
            lookup = self._lookup_call(LOOKUP, self._resolve_trigger(text))
            rest = list(node.args[1:])
            func = node.func

        args = [first.with_changes(value=lookup), *rest]
        if len(args) != len(node.args):
            args[-1] = args[-1].with_changes(comma=cst.MaybeSentinel.DEFAULT)
        self._mark_rewritten()
        return node.with_changes(func=func, args=args)

    def _rewrite_add(self, node: cst.Call) -> cst.BaseExpression:
        name = callee_name(node.func)
        text = literal_text(node.args[0].value) if node.args else None
        if text is None or node.args[0].keyword is not None:
            logger.debug(f"{self.config.runtime_module}.{name} without a literal first argument in {self.unit.name}")
            return node
        if not is_xml_compatible(text):
            self._report_ambiguous(f"string with control characters in call to {name} cannot be stored")
            return node

        logger.debug(f"found a string to add via {name}: {text!r}")
        if name == ADDF:
            converted = self._format_lookup(text, node.args[1:], str(name))
            if converted is None:
                return node
            lookup, rest = converted
            if rest:
                self._report_ambiguous(f"keyword arguments in call to {name}")
                return node
        else:
            if len(node.args) > 1:
                self._report_ambiguous(f"extra arguments in call to {name}")
                return node
            lookup = self._lookup_call(LOOKUP, self._resolve_trigger(text))

        self._mark_rewritten()
        return lookup

    def _normalize_migrated(self, node: cst.Call) -> cst.Call:
        if len(node.args) < 2:
            logger.debug(f"lookup call without trigger argument in {self.unit.name}")
            return node

        argument = node.args[1]
        trigger = literal_text(argument.value)
        if trigger is None:
            logger.debug(f"lookup call with a non-literal trigger in {self.unit.name}")
            return node

        default = self.store.entries(self.default_locale, self.unit.name).get(trigger)
        if default is None:
            if self.store.entry(self.default_locale, trigger) is not None:
                logger.warning(
                    f"{self.unit.name}: lookup references trigger '{trigger}' of another module; leaving it as is"
                )
            else:
                logger.warning(f"{self.unit.name}: lookup references unknown trigger '{trigger}'; leaving it as is")
            return node

        canonical = self.dedup.get(default.value)
        if canonical is not None and canonical != trigger:
            logger.info(f"{self.unit.name}: collapsing duplicate trigger '{trigger}' into '{canonical}'")
            args = list(node.args)
            args[1] = argument.with_changes(value=cst.SimpleString(quote(canonical)))
            self.rewrites += 1
            return node.with_changes(args=args)

        if canonical is None:
            self.dedup[default.value] = trigger
            # carry the current entries over; this drops triggers no longer referenced
            for locale, entries in self.entries.items():
                current = self.store.entries(locale, self.unit.name).get(trigger)
                entries[trigger] = current if current is not None else default.untranslated()
        return node

    # -- helpers ------------------------------------------------------------

    def _is_runtime_attribute(self, func: cst.BaseExpression) -> bool:
        return (
            isinstance(func, cst.Attribute)
            and isinstance(func.value, cst.Name)
            and func.value.value == self.config.runtime_module
        )

    def _runtime_attribute(self, name: str) -> cst.Attribute:
        return cst.Attribute(value=cst.Name(self.config.runtime_module), attr=cst.Name(name))

    def _plain_counterpart(self, func: cst.BaseExpression) -> cst.BaseExpression:
        """Strip the format suffix from a function name if its plain counterpart is registered."""
        name = callee_name(func)
        suffix = self.config.format_suffix
        if name is None or not name.endswith(suffix):
            return func
        plain = name[: -len(suffix)]
        if plain not in self.funcs:
            return func
        if isinstance(func, cst.Name):
            return func.with_changes(value=plain)
        if isinstance(func, cst.Attribute):
            return func.with_changes(attr=cst.Name(plain))
        return func

    def _resolve_trigger(self, text: str) -> str:
        existing = self.dedup.get(text)
        if existing is not None:
            logger.debug(f"reusing trigger '{existing}' for duplicate text in {self.unit.name}")
            return existing

        entry_id = self.store.next_id(self.unit.name)
        trigger = f"{self.unit.name}:{entry_id}"
        entry = Entry(id=entry_id, trigger=trigger, value=text)
        for locale, entries in self.entries.items():
            entries[trigger] = entry if locale == self.default_locale else entry.untranslated()
        self.dedup[text] = trigger
        return trigger

    def _locale_expression(self) -> cst.BaseExpression:
        scope = self._binding_scope()
        if scope is None:
            return cst.parse_expression(self.config.locale_resolver)
        scope.rewritten = True
        return cst.Name(self.config.locale_name)

    def _lookup_call(self, name: str, trigger: str, substitutions: cst.Dict | None = None) -> cst.Call:
        args = [cst.Arg(self._locale_expression()), cst.Arg(cst.SimpleString(quote(trigger)))]
        if substitutions is not None:
            args.append(cst.Arg(substitutions))
        return cst.Call(func=self._runtime_attribute(name), args=args)

    def _format_lookup(
        self, text: str, args: Sequence[cst.Arg], name: str
    ) -> tuple[cst.Call, list[cst.Arg]] | None:
        """Build the formatted lookup for a format call; None if the call cannot be converted."""
        converted = convert_printf(text)
        if converted is None:
            self._report_ambiguous(f"unsupported format directive in call to {name}")
            return None
        template, verbs = converted

        if any(arg.star for arg in args):
            self._report_ambiguous(f"star arguments in call to {name}")
            return None
        positional = [arg for arg in args if arg.keyword is None]
        if len(positional) != len(verbs):
            self._report_ambiguous(
                f"call to {name} has {len(positional)} format arguments for {len(verbs)} directives"
            )
            return None
        rest = [arg for arg in args if arg.keyword is not None]

        trigger = self._resolve_trigger(template)
        if not verbs:
            return self._lookup_call(LOOKUP, trigger), rest

        elements = [
            cst.DictElement(
                key=cst.SimpleString(quote(str(index))),
                value=self._substitution(verb, arg.value),
            )
            for index, (verb, arg) in enumerate(zip(verbs, positional, strict=True))
        ]
        return self._lookup_call(LOOKUP_FORMATTED, trigger, cst.Dict(elements)), rest

    @staticmethod
    def _substitution(verb: FormatVerb, value: cst.BaseExpression) -> cst.BaseExpression:
        """
        Build the expression rendering one format argument.

        ``%s`` gives ``str(x)``, ``%r`` gives ``repr(x)`` and ``%d`` gives
        ``str(int(x))``; anything else is ``format(<coerced x>, spec)``.
        """
        coerced = cst.Call(func=cst.Name(verb.coercion), args=[cst.Arg(value)])
        if verb.is_simple and verb.verb in STRING_VERBS:
            return coerced
        if verb.is_simple and verb.verb in "di":
            return cst.Call(func=cst.Name("str"), args=[cst.Arg(coerced)])
        return cst.Call(
            func=cst.Name("format"),
            args=[cst.Arg(coerced), cst.Arg(cst.SimpleString(quote(verb.format_spec())))],
        )

    def _mark_rewritten(self) -> None:
        self.rewrites += 1
        self.needs_runtime = True

    def _report_ambiguous(self, what: str) -> None:
        problem = AmbiguousConstruct(f"{self.unit.name}: {what}", unit=self.unit.name)
        logger.warning(str(problem))

    # -- post-pass fixups ---------------------------------------------------

    def _is_binding(self, statement: cst.BaseStatement) -> bool:
        if not isinstance(statement, cst.SimpleStatementLine) or len(statement.body) != 1:
            return False
        assign = statement.body[0]
        return (
            isinstance(assign, cst.Assign)
            and len(assign.targets) == 1
            and isinstance(assign.targets[0].target, cst.Name)
            and assign.targets[0].target.value == self.config.locale_name
        )

    def _ensure_binding(self, node: cst.FunctionDef) -> cst.FunctionDef:
        body = node.body
        if isinstance(body, cst.SimpleStatementSuite):
            body = cst.IndentedBlock(body=[cst.SimpleStatementLine(body=list(body.body))])
        statements = list(body.body)

        index = 1 if docstring_node(node.with_changes(body=body)) is not None else 0
        if index < len(statements) and self._is_binding(statements[index]):
            return node.with_changes(body=body)

        logger.debug(f"adding {self.config.locale_name} to {node.name.value} in {self.unit.name}")
        binding = cst.parse_statement(f"{self.config.locale_name} = {self.config.locale_resolver}\n")
        statements.insert(index, binding)
        return node.with_changes(body=body.with_changes(body=statements))

    @override
    def leave_Module(self, original_node: cst.Module, updated_node: cst.Module) -> cst.Module:
        if not self.needs_runtime:
            return updated_node
        body = list(updated_node.body)
        body = self._ensure_import(body)
        body = self._ensure_load(body)
        return updated_node.with_changes(body=body)

    def _imports_runtime(self, statement: cst.BaseStatement) -> bool:
        if not isinstance(statement, cst.SimpleStatementLine):
            return False
        for small in statement.body:
            if isinstance(small, cst.Import):
                for alias in small.names:
                    if alias.asname is None and get_full_name_for_node(alias.name) == self.config.runtime_module:
                        return True
        return False

    def _ensure_import(self, body: list[cst.BaseStatement]) -> list[cst.BaseStatement]:
        start, end = import_block(body)
        if any(self._imports_runtime(statement) for statement in body):
            body[start:end] = sort_import_block(body[start:end])
            return body

        import_line = cst.parse_statement(f"import {self.config.runtime_module}\n")
        if start == end:
            if start > 0:
                import_line = import_line.with_changes(leading_lines=[cst.EmptyLine()])
            body.insert(start, import_line)
            return body

        body[start:end] = sort_import_block([*body[start:end], import_line])
        return body

    def _load_target(self, statement: cst.BaseStatement) -> str | None:
        """Module argument of a top-level ``pyloc.load("...")`` statement."""
        if not isinstance(statement, cst.SimpleStatementLine) or len(statement.body) != 1:
            return None
        expr = statement.body[0]
        if not isinstance(expr, cst.Expr) or not isinstance(expr.value, cst.Call):
            return None
        call = expr.value
        if not (self._is_runtime_attribute(call.func) and callee_name(call.func) == LOAD):
            return None
        if not call.args:
            return None
        return literal_text(call.args[0].value)

    def _ensure_load(self, body: list[cst.BaseStatement]) -> list[cst.BaseStatement]:
        loads = [index for index, statement in enumerate(body) if self._load_target(statement) is not None]
        if any(self._load_target(body[index]) == self.unit.name for index in loads):
            return body

        load_line = cst.parse_statement(
            f"{self.config.runtime_module}.{LOAD}({quote(self.unit.name)})\n"
        )
        if loads:
            insert_at = loads[-1] + 1
        else:
            _, insert_at = import_block(body)
            for index, statement in enumerate(body):
                if self._imports_runtime(statement):
                    insert_at = max(insert_at, index + 1)
            load_line = load_line.with_changes(leading_lines=[cst.EmptyLine()])

        body.insert(insert_at, load_line)
        following = insert_at + 1
        if following < len(body) and not body[following].leading_lines:
            body[following] = body[following].with_changes(leading_lines=[cst.EmptyLine()])
        return body


def _is_docstring_line(statement: cst.BaseStatement) -> bool:
    return (
        isinstance(statement, cst.SimpleStatementLine)
        and len(statement.body) == 1
        and isinstance(statement.body[0], cst.Expr)
        and isinstance(statement.body[0].value, (cst.SimpleString, cst.ConcatenatedString))
    )


def _is_import_line(statement: cst.BaseStatement) -> bool:
    return (
        isinstance(statement, cst.SimpleStatementLine)
        and bool(statement.body)
        and all(isinstance(small, (cst.Import, cst.ImportFrom)) for small in statement.body)
    )


def import_block(body: Sequence[cst.BaseStatement]) -> tuple[int, int]:
    """Return the ``[start, end)`` range of the leading import block of a module body."""
    start = 1 if body and _is_docstring_line(body[0]) else 0
    end = start
    while end < len(body) and _is_import_line(body[end]):
        end += 1
    return start, end


def _import_sort_key(statement: cst.BaseStatement) -> tuple[int, int, int, str]:
    first = statement.body[0] if isinstance(statement, cst.SimpleStatementLine) else None
    if isinstance(first, cst.ImportFrom):
        module = get_full_name_for_node(first.module) if first.module is not None else ""
        dots = "." * len(first.relative)
        name = f"{dots}{module or ''}"
        return (0 if name == "__future__" else 1, 1, 1 if dots else 0, name.lower())
    if isinstance(first, cst.Import):
        name = get_full_name_for_node(first.names[0].name) or ""
        return (1, 0, 0, name.lower())
    return (2, 0, 0, "")


def sort_import_block(block: Sequence[cst.BaseStatement]) -> list[cst.BaseStatement]:
    """
    Sort an import block group by group.

    A statement preceded by blank lines or comments starts a new group. The
    leading lines of a group stay at the top of the group.
    """
    groups: list[list[cst.BaseStatement]] = []
    for index, statement in enumerate(block):
        if index == 0 or statement.leading_lines:
            groups.append([])
        groups[-1].append(statement)

    result: list[cst.BaseStatement] = []
    for group in groups:
        leading = group[0].leading_lines
        members = [group[0].with_changes(leading_lines=[]), *group[1:]]
        ordered = sorted(members, key=_import_sort_key)
        ordered[0] = ordered[0].with_changes(leading_lines=leading)
        result.extend(ordered)
    return result


class Rewriter:
    """Rewrite source units and keep the translation store in sync."""

    def __init__(self, store: TranslationStore, config: PylocConfig) -> None:
        self.store: TranslationStore = store
        self.config: PylocConfig = config

    def rewrite(self, unit: SourceUnit) -> RewriteResult:
        """
        Rewrite one unit against the current store content.

        The store is only touched through ``next_id``; the new entries are
        returned for the caller to flush.

        Args:
            unit: Parsed source unit

        Returns:
            Rewritten source and the unit's new entries per locale
        """
        transformer = RewriteTransformer(unit, self.store, self.config, self.store.locales())
        new_module = unit.module.visit(transformer)
        logger.debug(f"{unit.name}: {transformer.rewrites} call sites rewritten")
        return RewriteResult(
            unit=unit.name,
            original=unit.module.code,
            code=new_module.code,
            rewrites=transformer.rewrites,
            entries=transformer.entries,
        )

    def run(self, unit: SourceUnit) -> RewriteResult:
        """
        Load the unit's module, rewrite the unit and flush the module.

        The module lock is held for the whole load/rewrite/flush cycle.

        Raises:
            RecordFormatError: If one of the module's records is malformed
            OSError: If a record cannot be written
        """
        with self.store.module_lock(unit.name):
            _ = self.store.load(unit.name)
            logger.debug(f"module count at {self.store.counter(unit.name)}")
            result = self.rewrite(unit)
            has_entries = any(result.entries.values())
            has_records = any(
                self.store.entries(locale, unit.name) for locale in self.store.locales()
            )
            if has_entries or has_records:
                self.store.flush(unit.name, result.entries)
        return result

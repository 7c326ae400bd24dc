"""
Persisted translation records.

Each (locale, module) pair is stored as one XML document under
``<translations_dir>/<locale>/<module without extension>.xml``::

    <?xml version='1.0' encoding='UTF-8'?>
    <translation>
        <Rows id="0" name="app/main.py:0">
            <value>Hello</value>
            <!--Hello-->
        </Rows>
        <Counter>1</Counter>
    </translation>

Rows keep their document order on load and on save, so re-serializing an
unmodified record reproduces the same rows in the same order.

The comment holds a copy of the default text for translators and is never
read back into a value. XML forbids "--" inside a comment and a trailing
"-", so those are written as "- -" and "- "; the comment of such a row
does not round-trip.
"""

from __future__ import annotations

import logging
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path, PurePath

from lxml import etree

from .exceptions import RecordFormatError

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".xml"
ROOT_TAG = "translation"
ROW_TAG = "Rows"
VALUE_TAG = "value"
COUNTER_TAG = "Counter"

# Characters outside the XML 1.0 Char production
XML_INCOMPATIBLE = re.compile(r"[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


@dataclass(frozen=True)
class Row:
    """One persisted entry row."""

    id: int
    name: str
    value: str = ""
    comment: str = ""


@dataclass
class Record:
    """The logical content of one persisted (locale, module) record."""

    rows: list[Row] = field(default_factory=list)
    counter: int = 0


def is_xml_compatible(text: str) -> bool:
    """Whether ``text`` can be stored in a record unchanged."""
    return XML_INCOMPATIBLE.search(text) is None


def record_path(translations_dir: Path, locale: str, module: str) -> Path:
    """
    Build the record path for a module under a locale.

    Args:
        translations_dir: Root directory of all locales
        locale: Locale identifier (directory name)
        module: Module identifier, usually the source path of the unit

    Returns:
        Path of the XML record
    """
    pure = PurePath(module)
    parts = [
        part
        for part in pure.with_suffix("").parts
        if part not in {"", ".", ".."} and part != pure.anchor
    ]
    if not parts:
        raise RecordFormatError(f"Cannot derive a record path from module '{module}'")
    relative = Path(*parts).with_suffix(RECORD_SUFFIX)
    return translations_dir / locale / relative


def module_from_record(locale_dir: Path, path: Path, source_suffix: str = ".py") -> str:
    """Map a record path back to the module identifier it was written for."""
    relative = path.relative_to(locale_dir).with_suffix(source_suffix)
    return relative.as_posix()


def _secure_parser() -> etree.XMLParser:
    return etree.XMLParser(
        remove_blank_text=True,
        resolve_entities=False,
        no_network=True,
    )


def parse_record(content: bytes, source: str = "<memory>") -> Record:
    """
    Parse the bytes of one record.

    Args:
        content: Raw XML document
        source: Name used in error messages

    Returns:
        Parsed record

    Raises:
        RecordFormatError: If the document is not a well-formed record
    """
    try:
        root = etree.fromstring(content, _secure_parser())
    except etree.XMLSyntaxError as e:
        raise RecordFormatError(f"Invalid XML in {source}: {e}", record=source) from e

    if root.tag != ROOT_TAG:
        raise RecordFormatError(
            f"Unexpected root element <{root.tag}> in {source}, expected <{ROOT_TAG}>",
            record=source,
        )

    record = Record()
    for row in root.iterchildren(ROW_TAG):
        raw_id = row.get("id")
        name = row.get("name", "")
        try:
            row_id = int(raw_id) if raw_id is not None else -1
        except ValueError as e:
            raise RecordFormatError(
                f"Row '{name}' in {source} has a non-integer id: {raw_id!r}",
                record=source,
            ) from e
        if row_id < 0:
            raise RecordFormatError(f"Row '{name}' in {source} has no valid id", record=source)

        comment = ""
        for child in row:
            if isinstance(child, etree._Comment):  # pyright: ignore[reportPrivateUsage]
                comment = child.text or ""
                break

        record.rows.append(
            Row(id=row_id, name=name, value=row.findtext(VALUE_TAG) or "", comment=comment)
        )

    counter_text = root.findtext(COUNTER_TAG)
    if counter_text is not None and counter_text.strip():
        try:
            record.counter = int(counter_text.strip())
        except ValueError as e:
            raise RecordFormatError(
                f"Counter in {source} is not an integer: {counter_text!r}", record=source
            ) from e

    return record


def read_record(path: Path) -> Record | None:
    """
    Read a record from disk.

    Returns:
        The parsed record, or None if no record exists at ``path``

    Raises:
        RecordFormatError: If the record exists but is malformed
    """
    try:
        content = path.read_bytes()
    except FileNotFoundError:
        return None
    return parse_record(content, source=str(path))


def _comment_text(text: str) -> str:
    # "--" is not allowed inside an XML comment, nor a trailing "-"
    safe = text.replace("--", "- -")
    if safe.endswith("-"):
        safe += " "
    return safe


def serialize_record(record: Record) -> bytes:
    """
    Serialize a record into an indented XML document.

    Raises:
        RecordFormatError: If a row holds characters XML cannot represent
    """
    root = etree.Element(ROOT_TAG)
    for row in record.rows:
        try:
            element = etree.SubElement(root, ROW_TAG, id=str(row.id), name=row.name)
            value = etree.SubElement(element, VALUE_TAG)
            value.text = row.value
            if row.comment:
                element.append(etree.Comment(_comment_text(row.comment)))
        except ValueError as e:
            raise RecordFormatError(f"Row '{row.name}' cannot be stored as XML: {e}", record=row.name) from e
    counter = etree.SubElement(root, COUNTER_TAG)
    counter.text = str(record.counter)

    etree.indent(root, space="    ")
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def write_record(path: Path, record: Record) -> None:
    """
    Write a record atomically.

    Raises:
        RecordFormatError: If the record cannot be serialized
        OSError: If file operations fail
    """
    write_serialized(path, serialize_record(record))


def write_serialized(path: Path, content: bytes) -> None:
    """
    Write an already serialized record atomically.

    The document is written to a temporary file next to ``path`` and moved
    into place, so a failed write never leaves a truncated record behind.

    Raises:
        OSError: If file operations fail
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_file = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as temp_file:
            _ = temp_file.write(content)
            temp_file.flush()
            temp_path = Path(temp_file.name)

        _ = temp_path.replace(path)
        logger.debug(f"Wrote {len(content)} bytes to {path}")

    except Exception as e:
        if temp_file and Path(temp_file.name).exists():
            Path(temp_file.name).unlink(missing_ok=True)
        raise OSError(f"Failed to write translation record {path}: {e}") from e

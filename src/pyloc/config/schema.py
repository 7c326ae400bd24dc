"""Configuration schema for pyloc using Pydantic models."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, ClassVar

import libcst as cst
from babel import Locale, UnknownLocaleError
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..source import EXCLUDED_DIRS

DEFAULT_EXCLUDED_DIRS = sorted(EXCLUDED_DIRS)


def validate_locale_tag(tag: str) -> str:
    """
    Check that a locale identifier names a known locale.

    Args:
        tag: Locale identifier such as ``en-GB`` or ``fr``

    Returns:
        The identifier, unchanged

    Raises:
        ValueError: If the identifier does not match any known locale
    """
    try:
        _ = Locale.parse(tag.replace("_", "-"), sep="-")
    except (ValueError, TypeError, UnknownLocaleError) as e:
        raise ValueError(f"'{tag}' does not match any known language code") from e
    return tag


class PylocConfig(BaseModel):
    """
    Settings of one pyloc run.

    Values come from an optional YAML file and are overridden by
    command-line flags.
    """

    default_locale: str = Field(
        default="en-GB",
        description="Locale whose text is extracted directly from source",
        min_length=1,
    )
    funcs: list[str] = Field(
        default_factory=list,
        description="Plain functions whose first string argument is translatable",
    )
    fmt_funcs: list[str] = Field(
        default_factory=list,
        description="printf-style functions whose first string argument is translatable",
    )
    format_suffix: str = Field(
        default="f",
        description="Suffix mapping a format function name to its plain counterpart",
        min_length=1,
    )
    apply: bool = Field(
        default=False,
        description="Overwrite source files instead of printing the rewritten source",
    )
    translations_dir: Path = Field(
        default=Path("trans"),
        description="Root directory of the per-locale translation records",
    )
    runtime_module: str = Field(
        default="pyloc",
        description="Import name of the runtime lookup package used by rewritten code",
    )
    locale_name: str = Field(
        default="lang",
        description="Name of the active-locale binding inserted into functions",
    )
    locale_resolver: str = Field(
        default="pyloc.get_lang()",
        description="Expression resolving the active locale",
        min_length=1,
    )
    workers: Annotated[int, Field(ge=1, le=64)] = Field(
        default=1,
        description="Number of threads used to process units in directory mode",
    )
    exclude_dirs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS),
        description="Directory names skipped while walking directories",
    )

    model_config: ClassVar[ConfigDict] = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    @field_validator("default_locale")
    @classmethod
    def validate_default_locale(cls, v: str) -> str:
        """Validate the default locale identifier."""
        return validate_locale_tag(v)

    @field_validator("runtime_module", "locale_name")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Validate names that are emitted as Python identifiers."""
        if not v.isidentifier():
            raise ValueError(f"'{v}' is not a valid Python identifier")
        return v

    @field_validator("locale_resolver")
    @classmethod
    def validate_resolver(cls, v: str) -> str:
        """Validate that the locale resolver is a Python expression."""
        try:
            _ = cst.parse_expression(v)
        except cst.ParserSyntaxError as e:
            raise ValueError(f"locale_resolver is not a valid expression: {v}") from e
        return v

    @field_validator("funcs", "fmt_funcs")
    @classmethod
    def validate_function_names(cls, v: list[str]) -> list[str]:
        """Drop empty names and surrounding whitespace."""
        return [name.strip() for name in v if name.strip()]

"""
pyloc - string extraction and runtime translation lookup for Python projects.

The package root exposes the runtime API used by rewritten code; the
extraction tooling lives in the submodules and behind the ``pyloc`` command.
"""

from .runtime import (
    add,
    addf,
    configure,
    get_lang,
    get_store,
    is_supported,
    languages,
    load,
    set_lang,
    tr,
    trf,
)

__all__ = [
    "add",
    "addf",
    "configure",
    "get_lang",
    "get_store",
    "is_supported",
    "languages",
    "load",
    "set_lang",
    "tr",
    "trf",
]

"""Capability contracts and their in-process implementations."""

from .contracts import (
    CodebasePacker,
    GrepMatch,
    PackOptions,
    PackResult,
    ProjectHandle,
    ProjectSymbols,
    SnapshotSearch,
    SymbolInfo,
    SymbolService,
    TextMatch,
)
from .local import LocalCodebasePacker
from .symbols import LocalSymbolService

__all__ = [
    "CodebasePacker",
    "GrepMatch",
    "LocalCodebasePacker",
    "LocalSymbolService",
    "PackOptions",
    "PackResult",
    "ProjectHandle",
    "ProjectSymbols",
    "SnapshotSearch",
    "SymbolInfo",
    "SymbolService",
    "TextMatch",
]

"""Typed contracts for the external capabilities the pipeline consumes.

Three capabilities are used:

* a *codebase packer* that snapshots a directory and returns an output id,
* a *snapshot search* that greps a packed snapshot,
* a *symbol service* that registers a project, searches its text and lists
  symbols per file.

Implementations may hand back either the models defined here or plain
mappings; the ``coerce_*`` helpers validate both shapes at the boundary and
raise :class:`~todolens.errors.ServiceResponseError` for anything else.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, List, Optional, Protocol, Sequence, Type, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ServiceResponseError

__all__ = [
    "CodebasePacker",
    "GrepMatch",
    "PackOptions",
    "PackResult",
    "ProjectHandle",
    "ProjectSymbols",
    "SnapshotSearch",
    "SymbolInfo",
    "SymbolService",
    "TextMatch",
    "coerce_grep_matches",
    "coerce_pack_result",
    "coerce_project_handle",
    "coerce_project_symbols",
    "coerce_text_matches",
]


class ContractModel(BaseModel):
    """Boundary model; unknown keys from a service are ignored."""

    model_config = ConfigDict(extra="ignore")


class PackOptions(ContractModel):
    compress: bool = False
    include_patterns: List[str] = Field(default_factory=list)
    ignore_patterns: List[str] = Field(default_factory=list)
    top_files_length: int = Field(default=10, ge=0)


class PackResult(ContractModel):
    output_id: str = Field(min_length=1)
    total_files: int = Field(default=0, ge=0)
    top_files: List[str] = Field(default_factory=list)


class GrepMatch(ContractModel):
    file: str
    line: int = Field(ge=1)
    match: str = ""
    content: str = ""
    context: List[str] = Field(default_factory=list)

    def surrounding_text(self) -> str:
        """Return the matched line together with its context window."""
        return "\n".join([self.content, self.match, *self.context])

    def is_path_header(self) -> bool:
        """True for hits on a snapshot entry's ``path="..."`` header rather than its text."""
        return self.content == f'path="{self.file}"'


class ProjectHandle(ContractModel):
    name: str = Field(min_length=1)
    root_path: str


class TextMatch(ContractModel):
    file: str
    line: int = Field(ge=1)
    column: Optional[int] = Field(default=None, ge=0)
    text: str = ""
    context: List[str] = Field(default_factory=list)


class SymbolInfo(ContractModel):
    name: str
    line: int = Field(ge=1)
    column: Optional[int] = Field(default=None, ge=0)
    file: str = ""


class ProjectSymbols(ContractModel):
    functions: List[SymbolInfo] = Field(default_factory=list)
    classes: List[SymbolInfo] = Field(default_factory=list)


@runtime_checkable
class CodebasePacker(Protocol):
    def pack(self, directory: str, options: PackOptions) -> PackResult | Mapping[str, Any]:
        ...


@runtime_checkable
class SnapshotSearch(Protocol):
    def grep(
        self, output_id: str, pattern: str, context_lines: int = 0
    ) -> Sequence[GrepMatch | Mapping[str, Any]]:
        ...


@runtime_checkable
class SymbolService(Protocol):
    def register_project(
        self, path: str, name: str, description: str = ""
    ) -> ProjectHandle | Mapping[str, Any]:
        ...

    def find_text(
        self,
        project: str,
        pattern: str,
        file_pattern: Optional[str] = None,
        max_results: int = 100,
    ) -> Sequence[TextMatch | Mapping[str, Any]]:
        ...

    def get_symbols(self, project: str, file_path: str) -> ProjectSymbols | Mapping[str, Any]:
        ...


ModelT = TypeVar("ModelT", bound=BaseModel)


def _coerce(model: Type[ModelT], value: Any, capability: str) -> ModelT:
    if isinstance(value, model):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if not isinstance(value, Mapping):
        raise ServiceResponseError(
            f"{capability} returned {type(value).__name__}, expected a mapping"
        )
    try:
        return model.model_validate(dict(value))
    except ValidationError as error:
        raise ServiceResponseError(f"{capability} returned a malformed payload: {error}") from error


def _coerce_list(model: Type[ModelT], value: Any, capability: str) -> List[ModelT]:
    if value is None:
        return []
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence):
        raise ServiceResponseError(
            f"{capability} returned {type(value).__name__}, expected a list"
        )
    return [_coerce(model, item, capability) for item in value]


def coerce_pack_result(value: Any) -> PackResult:
    return _coerce(PackResult, value, "pack")


def coerce_grep_matches(value: Any) -> List[GrepMatch]:
    return _coerce_list(GrepMatch, value, "grep")


def coerce_project_handle(value: Any) -> ProjectHandle:
    return _coerce(ProjectHandle, value, "register_project")


def coerce_text_matches(value: Any) -> List[TextMatch]:
    return _coerce_list(TextMatch, value, "find_text")


def coerce_project_symbols(value: Any) -> ProjectSymbols:
    return _coerce(ProjectSymbols, value, "get_symbols")

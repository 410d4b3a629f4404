"""In-process codebase packer and snapshot search.

``pack`` walks a directory once and keeps an in-memory snapshot of every text
file it accepts; ``grep`` runs a regular expression over a snapshot.  Each
file also exposes a ``path="<relative path>"`` header line so callers can
test for file existence with a pattern instead of a separate lookup.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import ServiceError
from .contracts import GrepMatch, PackOptions, PackResult

LOGGER = logging.getLogger(__name__)

DEFAULT_SKIP_DIRS = (
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    ".mypy_cache",
    ".pytest_cache",
    "dist",
    "build",
    ".next",
    "coverage",
)

MAX_FILE_BYTES = 1_000_000
_BINARY_SNIFF_BYTES = 8192


@dataclass(slots=True)
class SnapshotFile:
    path: str
    lines: List[Tuple[int, str]]
    size: int

    @property
    def header(self) -> str:
        return f'path="{self.path}"'


@dataclass(slots=True)
class Snapshot:
    output_id: str
    root: Path
    files: Dict[str, SnapshotFile] = field(default_factory=dict)


def _matches_any(path: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(path, pattern) for pattern in patterns)


def read_text_file(path: Path, max_bytes: int = MAX_FILE_BYTES) -> Optional[str]:
    """Return the UTF-8 text of ``path`` or ``None`` for binary/oversized files."""
    try:
        if path.stat().st_size > max_bytes:
            return None
        raw = path.read_bytes()
    except OSError as error:
        LOGGER.debug("Skipping unreadable file %s: %s", path, error)
        return None
    if b"\0" in raw[:_BINARY_SNIFF_BYTES]:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def iter_project_files(
    root: Path,
    skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS,
    include_patterns: Sequence[str] = (),
    ignore_patterns: Sequence[str] = (),
) -> List[Path]:
    """Return files under ``root`` as root-relative paths, sorted."""
    skipped = set(skip_dirs)
    found: List[Path] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in skipped)
        for filename in sorted(filenames):
            relative = (Path(current) / filename).relative_to(root)
            key = relative.as_posix()
            if include_patterns and not _matches_any(key, include_patterns):
                continue
            if ignore_patterns and _matches_any(key, ignore_patterns):
                continue
            found.append(relative)
    return found


class LocalCodebasePacker:
    """Filesystem-backed implementation of the packer and snapshot search."""

    def __init__(self, skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS, max_file_bytes: int = MAX_FILE_BYTES) -> None:
        self.skip_dirs = tuple(skip_dirs)
        self.max_file_bytes = max_file_bytes
        self._snapshots: Dict[str, Snapshot] = {}
        self._lock = threading.Lock()

    def pack(self, directory: str, options: Optional[PackOptions] = None) -> PackResult:
        options = options or PackOptions()
        root = Path(directory)
        if not root.is_dir():
            raise ServiceError(f"Directory not found: {directory}")

        snapshot = Snapshot(output_id=uuid.uuid4().hex, root=root)
        for relative in iter_project_files(
            root, self.skip_dirs, options.include_patterns, options.ignore_patterns
        ):
            text = read_text_file(root / relative, self.max_file_bytes)
            if text is None:
                continue
            lines = list(enumerate(text.splitlines(), start=1))
            if options.compress:
                lines = [(number, line) for number, line in lines if line.strip()]
            key = relative.as_posix()
            snapshot.files[key] = SnapshotFile(path=key, lines=lines, size=len(text))

        with self._lock:
            self._snapshots[snapshot.output_id] = snapshot

        ranked = sorted(snapshot.files.values(), key=lambda item: (-item.size, item.path))
        LOGGER.debug("Packed %d file(s) from %s as %s", len(snapshot.files), root, snapshot.output_id)
        return PackResult(
            output_id=snapshot.output_id,
            total_files=len(snapshot.files),
            top_files=[item.path for item in ranked[: options.top_files_length]],
        )

    def grep(self, output_id: str, pattern: str, context_lines: int = 0) -> List[GrepMatch]:
        snapshot = self._snapshot(output_id)
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as error:
            raise ServiceError(f"Invalid search pattern {pattern!r}: {error}") from error

        window = max(0, context_lines)
        matches: List[GrepMatch] = []
        for path in sorted(snapshot.files):
            entry = snapshot.files[path]
            header = regex.search(entry.header)
            if header is not None:
                matches.append(GrepMatch(file=path, line=1, match=header.group(0), content=entry.header))
            for position, (number, line) in enumerate(entry.lines):
                found = regex.search(line)
                if found is None:
                    continue
                before = entry.lines[max(0, position - window) : position]
                after = entry.lines[position + 1 : position + 1 + window]
                matches.append(
                    GrepMatch(
                        file=path,
                        line=number,
                        match=found.group(0),
                        content=line,
                        context=[text for _, text in (*before, *after)],
                    )
                )
        return matches

    def release(self, output_id: str) -> None:
        with self._lock:
            self._snapshots.pop(output_id, None)

    def list_paths(self, output_id: str) -> List[str]:
        return sorted(self._snapshot(output_id).files)

    def _snapshot(self, output_id: str) -> Snapshot:
        with self._lock:
            snapshot = self._snapshots.get(output_id)
        if snapshot is None:
            raise ServiceError(f"Unknown snapshot: {output_id}")
        return snapshot


__all__ = [
    "DEFAULT_SKIP_DIRS",
    "LocalCodebasePacker",
    "Snapshot",
    "SnapshotFile",
    "iter_project_files",
    "read_text_file",
]

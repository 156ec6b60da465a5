"""Per-file, per-line registry giving every source location a stable identity."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from calltrace.domain.model.location import Location, normalize_path

if TYPE_CHECKING:
    from calltrace.domain.model.call_graph import MethodDefinition

# calltrace package root: never traced, never indexed
TRACER_ROOT: str = normalize_path(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))


def is_under(path: str, root: str) -> bool:
    """Check if normalized path equals root or lies below it."""
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


@dataclass(slots=True, eq=False)
class Line:
    """One source line. Entity: identity is the object, key is location.

    Holds at most one method definition and the indices (into the graph's
    call arena) of calls made from this line, in arrival order.
    Mutated only by CallGraph while a session is active.
    """

    file: FileNode
    lineno: int
    method_definition: MethodDefinition | None = None
    _call_indices: list[int] = field(default_factory=list, repr=False)

    @property
    def location(self) -> Location:
        """Identity key (file path, line number)."""
        return Location(file=self.file.path, line=self.lineno)

    @property
    def call_indices(self) -> tuple[int, ...]:
        """Sequence indices of outgoing calls, arrival order."""
        return tuple(self._call_indices)

    @property
    def is_definition(self) -> bool:
        """Line is a method entry point."""
        return self.method_definition is not None

    @property
    def is_call_site(self) -> bool:
        """At least one call observed from this line."""
        return bool(self._call_indices)

    def __repr__(self) -> str:
        return f"Line({self.file.path}:{self.lineno})"


@dataclass(slots=True, eq=False)
class FileNode:
    """One traced source file. Owns its Lines, created lazily."""

    path: str
    _lines: dict[int, Line] = field(default_factory=dict, repr=False)

    @property
    def lines(self) -> Mapping[int, Line]:
        """Read-only view: line number -> Line."""
        return MappingProxyType(self._lines)

    def line_at(self, lineno: int) -> Line:
        """Get or create Line for lineno. Idempotent.

        Raises:
            ValueError: lineno < 1.
        """
        if lineno < 1:
            raise ValueError(f"lineno must be >= 1, got {lineno}")
        line = self._lines.get(lineno)
        if line is None:
            line = Line(file=self, lineno=lineno)
            self._lines[lineno] = line
        return line

    def sorted_lines(self) -> tuple[Line, ...]:
        """Lines ordered by line number."""
        return tuple(self._lines[n] for n in sorted(self._lines))

    def __repr__(self) -> str:
        return f"FileNode({self.path})"


class SourceIndex:
    """Registry of FileNodes keyed by normalized absolute path.

    Paths under any excluded root (by default the tracer's own package)
    never get a FileNode: resolve() returns None for them.

    Not thread-safe by itself: CallGraph serializes access.
    """

    def __init__(self, excluded_roots: tuple[str, ...] = (TRACER_ROOT,)) -> None:
        """Initialize index.

        Args:
            excluded_roots: Directories (or files) whose paths are never indexed.
        """
        self._excluded_roots = tuple(normalize_path(root) for root in excluded_roots)
        self._files: dict[str, FileNode] = {}

    @property
    def excluded_roots(self) -> tuple[str, ...]:
        """Normalized excluded roots."""
        return self._excluded_roots

    def is_excluded(self, path: str) -> bool:
        """Check if normalized path belongs to an excluded root."""
        return any(is_under(path, root) for root in self._excluded_roots)

    def resolve(self, path: str | os.PathLike[str]) -> FileNode | None:
        """Get or create FileNode for path. Idempotent.

        Returns:
            FileNode, or None if path is excluded.
        """
        normalized = normalize_path(path)
        if self.is_excluded(normalized):
            return None
        node = self._files.get(normalized)
        if node is None:
            node = FileNode(path=normalized)
            self._files[normalized] = node
        return node

    def line_at(self, file: FileNode, lineno: int) -> Line:
        """Get or create Line in file. Idempotent."""
        return file.line_at(lineno)

    def line_for(self, path: str | os.PathLike[str], lineno: int) -> Line | None:
        """Resolve path and line in one step. None if path is excluded."""
        node = self.resolve(path)
        if node is None:
            return None
        return node.line_at(lineno)

    def files(self) -> tuple[FileNode, ...]:
        """FileNodes ordered by path."""
        return tuple(self._files[p] for p in sorted(self._files))

    def __len__(self) -> int:
        return len(self._files)

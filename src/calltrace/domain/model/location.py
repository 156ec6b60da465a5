"""Source location value object."""

from __future__ import annotations

import os
from dataclasses import dataclass


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Absolute, normalized form of path. Symlinks are not resolved."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


@dataclass(frozen=True, slots=True, order=True)
class Location:
    """Identity key of a source line.

    Ordering is (file, line): the deterministic key for link sorting.

    Attributes:
        file: Absolute normalized path to source file
        line: Line number (1-based, must be > 0)
    """

    file: str
    line: int

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.file:
            raise ValueError("file must not be empty")
        if self.line <= 0:
            raise ValueError(f"line must be > 0, got {self.line}")

    def __str__(self) -> str:
        """Format as file:line."""
        return f"{self.file}:{self.line}"

"""Traced-file classification by path.

A file is traced when it is a real source file, lies outside every excluded
root (tracer package, stdlib, site-packages), matches an include pattern (if
any) and no exclude pattern. Uses fnmatch: * matches any character including /.
"""

from __future__ import annotations

import fnmatch
import sysconfig
from dataclasses import dataclass
from typing import TYPE_CHECKING

from calltrace.domain.model.location import normalize_path
from calltrace.domain.model.source_index import TRACER_ROOT, is_under

if TYPE_CHECKING:
    from calltrace.application.config import TraceConfig

# Discover stdlib and site-packages paths from sysconfig (not hardcoded)
STDLIB_ROOTS: tuple[str, ...] = tuple(
    sorted(
        {
            normalize_path(p)
            for p in (
                sysconfig.get_path("stdlib"),
                sysconfig.get_path("platstdlib"),
                sysconfig.get_path("purelib"),
                sysconfig.get_path("platlib"),
            )
            if p is not None
        },
    ),
)


@dataclass(frozen=True, slots=True)
class PathFilter:
    """Decides which source files are traced.

    Attributes:
        include: Glob patterns; empty means every file is a candidate.
        exclude: Glob patterns of rejected files.
        excluded_roots: Normalized directories never traced.
    """

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    excluded_roots: tuple[str, ...] = (TRACER_ROOT,)

    @classmethod
    def from_config(cls, config: TraceConfig) -> PathFilter:
        """Build filter for a session config. Tracer package always excluded."""
        roots = (TRACER_ROOT, *STDLIB_ROOTS) if config.exclude_stdlib else (TRACER_ROOT,)
        return cls(
            include=config.include_paths,
            exclude=config.exclude_paths,
            excluded_roots=roots,
        )

    def accepts(self, filename: str) -> bool:
        """Check if code from filename is traced.

        Args:
            filename: code.co_filename as reported by the interpreter.
        """
        # <string>, <frozen importlib._bootstrap>, <stdin>: no source file
        if not filename or filename.startswith("<"):
            return False
        path = normalize_path(filename)
        if any(is_under(path, root) for root in self.excluded_roots):
            return False
        if self.include and not any(fnmatch.fnmatch(path, p) for p in self.include):
            return False
        return not any(fnmatch.fnmatch(path, p) for p in self.exclude)

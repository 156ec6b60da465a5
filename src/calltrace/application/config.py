"""Configuration for tracing sessions and report generation.

All fields have defaults. Immutable (frozen dataclass), passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass

from calltrace.application.collectors.constants import CALLTRACE_TOOL_ID, MAX_TOOL_ID
from calltrace.domain.model.call_graph import MismatchPolicy


@dataclass(frozen=True, slots=True)
class TraceConfig:
    """Configuration for a tracing session.

    Attributes:
        include_paths: Glob patterns (fnmatch) of files to trace. Empty = all.
        exclude_paths: Glob patterns of files never traced.
        exclude_stdlib: Skip stdlib and site-packages (from sysconfig).
        capture_arguments: Record call arguments (bounded repr).
        capture_returns: Record return values (bounded repr).
        policy: Consistency fault policy of the call graph.
        tool_id: sys.monitoring tool ID to register.
    """

    include_paths: tuple[str, ...] = ()
    exclude_paths: tuple[str, ...] = ()
    exclude_stdlib: bool = True
    capture_arguments: bool = False
    capture_returns: bool = False
    policy: MismatchPolicy = MismatchPolicy.STRICT
    tool_id: int = CALLTRACE_TOOL_ID

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not 0 <= self.tool_id <= MAX_TOOL_ID:
            raise ValueError(f"tool_id must be in 0..{MAX_TOOL_ID}, got {self.tool_id}")
        if isinstance(self.include_paths, str) or isinstance(self.exclude_paths, str):
            raise TypeError("include_paths/exclude_paths must be tuples of patterns, not str")


@dataclass(frozen=True, slots=True)
class ReportConfig:
    """Configuration for report generation.

    Attributes:
        suffix: Appended to a source path to name its document.
        history_name: File name of the history navigator document.
        asset_name: File name of the static helper script.
        title: Title of the history document.
        show_values: Include captured arguments/returns in text reports.
        console_width: Width of the rich console reporter.
    """

    suffix: str = ".html"
    history_name: str = "index.html"
    asset_name: str = "calltrace.js"
    title: str = "Call history"
    show_values: bool = False
    console_width: int = 120

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.suffix:
            raise ValueError("suffix must not be empty")
        for name in (self.history_name, self.asset_name):
            if not name or "/" in name or "\\" in name:
                raise ValueError(f"file name must be a bare name, got {name!r}")
        if self.console_width < 40:
            raise ValueError(f"console_width must be >= 40, got {self.console_width}")

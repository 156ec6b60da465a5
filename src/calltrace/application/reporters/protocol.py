"""Reporter protocol: contract for text reporters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from calltrace.domain.model.call_graph import FrozenCallGraph


class ReporterProtocol(Protocol):
    """Protocol for call graph reporters.

    Output is str, not print(). Caller decides destination.
    """

    def report(self, graph: FrozenCallGraph) -> str:
        """Format finalized graph as string.

        Args:
            graph: Finalized call graph.

        Returns:
            Formatted string representation.
        """
        ...

"""Event boundary: CallEvent/ReturnEvent -> CallGraph mutations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from calltrace.domain.events import CallEvent, ReturnEvent
from calltrace.domain.model.location import normalize_path

if TYPE_CHECKING:
    from collections.abc import Hashable

    from calltrace.domain.events import Event
    from calltrace.domain.model.call_graph import Call, CallGraph


class TraceRecorder:
    """Applies ordered events to a CallGraph.

    Events whose caller or definition lies in an excluded path are ignored
    here: no Line is created and None is returned. The event source must then
    not emit the matching return.
    """

    def __init__(self, graph: CallGraph) -> None:
        """Initialize recorder.

        Args:
            graph: Graph to mutate.
        """
        self._graph = graph

    @property
    def graph(self) -> CallGraph:
        """Target graph."""
        return self._graph

    def handle(self, event: Event, context: Hashable | None = None) -> Call | None:
        """Dispatch one event.

        Returns:
            Call opened or closed by the event, None if ignored.
        """
        match event:
            case CallEvent():
                return self.on_call(event, context)
            case ReturnEvent():
                return self.on_return(event, context)

    def on_call(self, event: CallEvent, context: Hashable | None = None) -> Call | None:
        """Record invocation. None if caller or definition is excluded."""
        index = self._graph.source_index
        if index.is_excluded(normalize_path(event.caller_file)) or index.is_excluded(
            normalize_path(event.definition_file),
        ):
            return None
        caller = self._graph.line_for(event.caller_file, event.caller_line)
        definition_line = self._graph.line_for(event.definition_file, event.definition_line)
        if caller is None or definition_line is None:
            return None
        definition = self._graph.define_method(definition_line, event.owner, event.method)
        return self._graph.record_call(caller, definition, event.arguments, context)

    def on_return(self, event: ReturnEvent, context: Hashable | None = None) -> Call | None:
        """Close the innermost open call of context."""
        return self._graph.record_return(context, event.owner, event.method, event.return_value)

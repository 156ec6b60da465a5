"""Call graph built online from an ordered call/return event stream.

CallGraph is the mutable, thread-safe builder used while a session is active.
finalize() checks stack termination and returns FrozenCallGraph, the read-only
view consumed by reporters.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

from calltrace.domain.exceptions import (
    DuplicateDefinitionMismatchError,
    GraphFinalizedError,
    StackMismatchError,
    UnterminatedCallsError,
)
from calltrace.domain.model.source_index import FileNode, Line, SourceIndex

if TYPE_CHECKING:
    import os

    from calltrace.domain.events import CapturedValue
    from calltrace.domain.model.location import Location

logger = logging.getLogger(__name__)


class MismatchPolicy(Enum):
    """How consistency faults are handled. One policy per graph.

    STRICT: raise on every fault (default).
    LENIENT: log a warning, record an Anomaly, continue.
    """

    STRICT = "strict"
    LENIENT = "lenient"


def current_context() -> int:
    """Identity of the current execution context (thread)."""
    return threading.get_ident()


@dataclass(frozen=True, slots=True)
class Anomaly:
    """Consistency fault tolerated under MismatchPolicy.LENIENT.

    Attributes:
        kind: Name of the error class that would have been raised.
        message: Error message.
    """

    kind: str
    message: str


@dataclass(slots=True, eq=False)
class MethodDefinition:
    """Method entry point bound to one Line.

    Identity: (line, owner, name). Holds indices of calls into it.
    """

    line: Line
    owner: str
    name: str
    _caller_indices: list[int] = field(default_factory=list, repr=False)

    @property
    def display_name(self) -> str:
        """Format as Owner#name."""
        return f"{self.owner}#{self.name}"

    @property
    def location(self) -> Location:
        """Definition line location."""
        return self.line.location

    @property
    def caller_indices(self) -> tuple[int, ...]:
        """Sequence indices of calls into this method, arrival order."""
        return tuple(self._caller_indices)

    def matches(self, owner: str, name: str) -> bool:
        """Check identity against (owner, name)."""
        return self.owner == owner and self.name == name

    def __repr__(self) -> str:
        return f"MethodDefinition({self.display_name} @ {self.line.file.path}:{self.line.lineno})"


@dataclass(slots=True, eq=False)
class Call:
    """One observed invocation. Owned by CallGraph, addressed by index.

    return_value is attached once, when the matching return arrives.
    """

    index: int
    caller: Line
    callee: MethodDefinition
    context: Hashable
    arguments: Mapping[str, CapturedValue] | None = None
    return_value: CapturedValue | None = None
    returned: bool = False

    def __repr__(self) -> str:
        return f"Call([{self.index}] {self.caller!r} -> {self.callee.display_name})"


@dataclass(frozen=True, slots=True)
class FrozenCallGraph:
    """Immutable view of a finalized CallGraph.

    Attributes:
        files: FileNodes ordered by path.
        calls: Call ledger in sequence-index order (calls[i].index == i).
        anomalies: Faults tolerated under the lenient policy.
    """

    files: tuple[FileNode, ...]
    calls: tuple[Call, ...]
    anomalies: tuple[Anomaly, ...] = ()

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        for position, call in enumerate(self.calls):
            if call.index != position:
                raise ValueError(f"ledger out of order: position {position} holds call {call.index}")

    @property
    def call_count(self) -> int:
        """Number of recorded calls."""
        return len(self.calls)

    def call(self, index: int) -> Call:
        """Call by sequence index."""
        return self.calls[index]

    def calls_from(self, line: Line) -> tuple[Call, ...]:
        """Outgoing calls of a line, arrival order."""
        return tuple(self.calls[i] for i in line.call_indices)

    def callers_of(self, definition: MethodDefinition) -> tuple[Call, ...]:
        """Calls into a method, arrival order."""
        return tuple(self.calls[i] for i in definition.caller_indices)

    def file(self, path: str) -> FileNode | None:
        """FileNode by normalized path."""
        for node in self.files:
            if node.path == path:
                return node
        return None

    @classmethod
    def empty(cls) -> FrozenCallGraph:
        """Graph with no files and no calls."""
        return cls(files=(), calls=())


class CallGraph:
    """Thread-safe mutable call graph. Append-only while active.

    Shared structures (source index, definition registry, call arena) are
    mutated under one lock. Each execution context has its own call stack of
    call indices; returns must close the innermost open call (LIFO).

    Lifecycle:
        graph = CallGraph()
        line = graph.line_for(path, lineno)
        ... define_method / record_call / record_return ...
        frozen = graph.finalize()
    """

    def __init__(
        self,
        index: SourceIndex | None = None,
        *,
        policy: MismatchPolicy = MismatchPolicy.STRICT,
    ) -> None:
        """Initialize empty graph.

        Args:
            index: Source index to resolve locations. New one if None.
            policy: Consistency fault policy.
        """
        self._index = index if index is not None else SourceIndex()
        self._policy = policy
        self._definitions: list[MethodDefinition] = []
        self._calls: list[Call] = []
        self._stacks: dict[Hashable, list[int]] = {}
        self._anomalies: list[Anomaly] = []
        self._lock = threading.Lock()
        self._frozen: FrozenCallGraph | None = None

    @property
    def policy(self) -> MismatchPolicy:
        """Consistency fault policy."""
        return self._policy

    @property
    def source_index(self) -> SourceIndex:
        """Underlying source index."""
        return self._index

    @property
    def is_finalized(self) -> bool:
        """finalize() already called."""
        return self._frozen is not None

    @property
    def call_count(self) -> int:
        """Number of calls recorded so far. Thread-safe."""
        with self._lock:
            return len(self._calls)

    @property
    def definitions(self) -> tuple[MethodDefinition, ...]:
        """Definitions in first-observation order. Thread-safe."""
        with self._lock:
            return tuple(self._definitions)

    @property
    def anomalies(self) -> tuple[Anomaly, ...]:
        """Tolerated faults so far. Thread-safe."""
        with self._lock:
            return tuple(self._anomalies)

    def line_for(self, path: str | os.PathLike[str], lineno: int) -> Line | None:
        """Resolve location via the source index. Thread-safe.

        Returns:
            Line, or None if path is excluded.
        """
        with self._lock:
            self._ensure_mutable()
            return self._index.line_for(path, lineno)

    def define_method(self, line: Line, owner: str, name: str) -> MethodDefinition:
        """Bind a method definition to line, or return the existing one.

        Raises:
            DuplicateDefinitionMismatchError: line already bound to another
                (owner, name) and policy is STRICT.
            GraphFinalizedError: graph finalized.
        """
        with self._lock:
            self._ensure_mutable()
            existing = line.method_definition
            if existing is None:
                definition = MethodDefinition(line=line, owner=owner, name=name)
                line.method_definition = definition
                self._definitions.append(definition)
                return definition
            if existing.matches(owner, name):
                return existing

            error = DuplicateDefinitionMismatchError(
                location=f"{line.file.path}:{line.lineno}",
                existing=existing.display_name,
                observed=f"{owner}#{name}",
            )
            self._fault(error)
            return existing

    def record_call(
        self,
        caller: Line,
        callee: MethodDefinition,
        arguments: Mapping[str, CapturedValue] | None = None,
        context: Hashable | None = None,
    ) -> Call:
        """Append a call to the ledger and open it on the context's stack.

        Args:
            caller: Call site line.
            callee: Invoked method.
            arguments: Captured arguments, optional.
            context: Execution context. Current thread if None.

        Raises:
            GraphFinalizedError: graph finalized.
        """
        key = current_context() if context is None else context
        with self._lock:
            self._ensure_mutable()
            call = Call(
                index=len(self._calls),
                caller=caller,
                callee=callee,
                context=key,
                arguments=arguments,
            )
            self._calls.append(call)
            caller._call_indices.append(call.index)  # noqa: SLF001 - graph owns back-references
            callee._caller_indices.append(call.index)  # noqa: SLF001
            self._stacks.setdefault(key, []).append(call.index)
            return call

    def record_return(
        self,
        context: Hashable | None,
        owner: str,
        name: str,
        return_value: CapturedValue | None = None,
    ) -> Call | None:
        """Close the innermost open call of context.

        Args:
            context: Execution context. Current thread if None.
            owner: Owning type of the returning method.
            name: Returning method name.
            return_value: Captured return value, optional.

        Returns:
            Closed Call. None only under LENIENT when no open call matched.

        Raises:
            StackMismatchError: empty stack or innermost call has another
                identity, and policy is STRICT.
            GraphFinalizedError: graph finalized.
        """
        key = current_context() if context is None else context
        with self._lock:
            self._ensure_mutable()
            stack = self._stacks.get(key, [])
            top = self._calls[stack[-1]] if stack else None
            if top is not None and top.callee.matches(owner, name):
                stack.pop()
                _close(top, return_value)
                return top

            error = StackMismatchError(
                context=key,
                expected=top.callee.display_name if top is not None else None,
                observed=f"{owner}#{name}",
            )
            self._fault(error)
            return self._recover_return(stack, owner, name, return_value)

    def open_calls(self, context: Hashable | None = None) -> tuple[int, ...]:
        """Indices of still open calls of context, outermost first."""
        key = current_context() if context is None else context
        with self._lock:
            return tuple(self._stacks.get(key, ()))

    def finalize(self) -> FrozenCallGraph:
        """Freeze the graph. Idempotent: returns the same view when repeated.

        Raises:
            UnterminatedCallsError: a context stack is not empty and policy
                is STRICT.
        """
        with self._lock:
            if self._frozen is not None:
                return self._frozen

            open_calls = {key: tuple(stack) for key, stack in self._stacks.items() if stack}
            if open_calls:
                self._fault(UnterminatedCallsError(open_calls))
            self._stacks.clear()

            self._frozen = FrozenCallGraph(
                files=self._index.files(),
                calls=tuple(self._calls),
                anomalies=tuple(self._anomalies),
            )
            return self._frozen

    def _ensure_mutable(self) -> None:
        """FAIL-FIRST: reject mutation after finalize()."""
        if self._frozen is not None:
            raise GraphFinalizedError

    def _fault(self, error: Exception) -> None:
        """Apply policy to a consistency fault. Caller holds the lock."""
        if self._policy is MismatchPolicy.STRICT:
            raise error
        logger.warning("tolerated %s: %s", type(error).__name__, error)
        self._anomalies.append(Anomaly(kind=type(error).__name__, message=str(error)))

    def _recover_return(
        self,
        stack: list[int],
        owner: str,
        name: str,
        return_value: CapturedValue | None,
    ) -> Call | None:
        """LENIENT: close the innermost matching call, discarding calls above it.

        Discarded calls stay in the ledger without a return value.
        No match: the return is dropped. Caller holds the lock.
        """
        for position in range(len(stack) - 1, -1, -1):
            call = self._calls[stack[position]]
            if call.callee.matches(owner, name):
                del stack[position:]
                _close(call, return_value)
                return call
        return None


def _close(call: Call, return_value: CapturedValue | None) -> None:
    """Mark call returned and attach return value."""
    call.return_value = return_value
    call.returned = True

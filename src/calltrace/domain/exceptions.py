"""Domain exceptions: all public errors of calltrace.

All exceptions visible to users are defined in domain.
Application layer raises these, never defines its own public exceptions.
"""

from __future__ import annotations


class CallTraceError(Exception):
    """Base for all calltrace error exceptions.

    Allows: except CallTraceError to catch all library errors.
    """


class DuplicateDefinitionMismatchError(CallTraceError, ValueError):
    """Line observed bound to two different method identities.

    A source line binds to at most one method definition ever.

    Attributes:
        location: Display form of the definition line (file:line).
        existing: Display name of the definition already bound.
        observed: Display name of the conflicting definition.
    """

    def __init__(self, *, location: str, existing: str, observed: str) -> None:
        """Initialize with line location and both identities."""
        self.location = location
        self.existing = existing
        self.observed = observed
        super().__init__(f"{location}: bound to {existing}, observed {observed}")


class StackMismatchError(CallTraceError, RuntimeError):
    """Return event does not close the innermost open call of its context.

    Attributes:
        context: Execution context identity.
        expected: Display name of the innermost open call, None if stack empty.
        observed: Display name carried by the return event.
    """

    def __init__(self, *, context: object, expected: str | None, observed: str) -> None:
        """Initialize with context and both identities."""
        self.context = context
        self.expected = expected
        self.observed = observed
        if expected is None:
            message = f"return of {observed} with empty call stack (context={context!r})"
        else:
            message = f"return of {observed}, innermost open call is {expected} (context={context!r})"
        super().__init__(message)


class UnterminatedCallsError(CallTraceError, RuntimeError):
    """Call stacks not empty at session end.

    Attributes:
        open_calls: Mapping context -> sequence indices of calls never returned.
    """

    def __init__(self, open_calls: dict[object, tuple[int, ...]]) -> None:
        """Initialize with open calls per context."""
        self.open_calls = open_calls
        total = sum(len(indices) for indices in open_calls.values())
        super().__init__(f"{total} unterminated call(s) in {len(open_calls)} context(s) at session end")


class GraphFinalizedError(CallTraceError, RuntimeError):
    """Graph already finalized, mutation rejected."""

    def __init__(self) -> None:
        """Initialize with fixed message."""
        super().__init__("Call graph already finalized")


class AlreadyActiveError(CallTraceError, RuntimeError):
    """Tracing already active, cannot enable again.

    Inherits RuntimeError for semantic correctness (invalid state).
    """

    def __init__(self) -> None:
        """Initialize with fixed message."""
        super().__init__("Tracing already active")


class NotActiveError(CallTraceError, RuntimeError):
    """Tracing not active, cannot disable."""

    def __init__(self) -> None:
        """Initialize with fixed message."""
        super().__init__("Tracing not active")


class NotExitedError(CallTraceError, RuntimeError):
    """Context not exited, result not available.

    Raised when accessing TraceHandle.result before context exit.
    """

    def __init__(self) -> None:
        """Initialize with fixed message."""
        super().__init__("Context not exited, result not available")


class ToolIdUnavailableError(CallTraceError, RuntimeError):
    """sys.monitoring tool ID is already in use.

    Attributes:
        tool_id: Requested tool ID.
    """

    def __init__(self, tool_id: int) -> None:
        """Initialize with tool ID."""
        self.tool_id = tool_id
        super().__init__(f"sys.monitoring tool ID {tool_id} is already in use")


class CallbackError(CallTraceError):
    """Unexpected exception from a monitoring callback.

    Wraps the original exception. Raised when the session is disabled.
    Preserves original traceback via __cause__.

    Attributes:
        original: Original exception from callback.
    """

    def __init__(self, original: BaseException) -> None:
        """Initialize with original exception."""
        self.original = original
        super().__init__(f"Callback raised: {type(original).__name__}: {original}")
        self.__cause__ = original


class ReportIOError(CallTraceError, OSError):
    """Source file unreadable or output location unwritable.

    Isolated to one file during report generation.

    Attributes:
        path: Path that failed.
        reason: Error description.
    """

    def __init__(self, *, path: str, reason: str) -> None:
        """Initialize with path and reason."""
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")

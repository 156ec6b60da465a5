"""Call/return event source using sys.monitoring (PEP 669).

Design decisions:
- PY_START opens a call; PY_RETURN, PY_YIELD and PY_UNWIND close it
- A generator or coroutine call closes at its first suspension;
  later resumptions are not new calls (PY_RESUME not tracked)
- Caller is the nearest enclosing frame in a traced file
- Only named functions and methods are calls: lambdas, generator
  expressions and comprehensions run as part of their enclosing call
- Untraced code returns DISABLE for local events to reduce overhead
- Faults raised while recording never propagate into traced code:
  the first one is kept and re-raised by check_pending_error()
"""

from __future__ import annotations

import inspect
import logging
import sys
import threading
from typing import TYPE_CHECKING

from calltrace.application.collectors.constants import CALLTRACE_TOOL_NAME
from calltrace.application.collectors.path_filter import PathFilter
from calltrace.domain.events import CallEvent, CapturedValue, ReturnEvent, capture_value
from calltrace.domain.exceptions import CallbackError, CallTraceError, ToolIdUnavailableError

if TYPE_CHECKING:
    import types

    from calltrace.application.config import TraceConfig
    from calltrace.application.recorder import TraceRecorder
    from calltrace.domain.events import Event

logger = logging.getLogger(__name__)

_EVENTS = sys.monitoring.events
_TRACKED_EVENTS = _EVENTS.PY_START | _EVENTS.PY_RETURN | _EVENTS.PY_YIELD | _EVENTS.PY_UNWIND


class MonitoringCollector:
    """Feeds interpreter call/return events to a TraceRecorder.

    Thread-safe. Open frames are tracked per thread: only frames whose call
    was recorded emit a return, so every return pairs with a recorded call.

    Lifecycle:
        collector = MonitoringCollector(recorder, config)
        collector.start()
        # ... traced work ...
        collector.stop()
        collector.check_pending_error()
    """

    def __init__(self, recorder: TraceRecorder, config: TraceConfig) -> None:
        """Initialize collector.

        Args:
            recorder: Receives events.
            config: Session configuration (paths, capture flags, tool ID).
        """
        self._recorder = recorder
        self._config = config
        self._filter = PathFilter.from_config(config)
        self._traced_files: dict[str, bool] = {}
        self._local = threading.local()
        self._lock = threading.Lock()
        self._pending_error: BaseException | None = None
        self._started = False

    @property
    def is_started(self) -> bool:
        """Check if collector is currently running."""
        return self._started

    @property
    def has_pending_error(self) -> bool:
        """Check if a fault was captured."""
        with self._lock:
            return self._pending_error is not None

    def start(self) -> None:
        """Register sys.monitoring callbacks and start collection.

        Raises:
            RuntimeError: If already started
            ToolIdUnavailableError: If tool ID is in use
        """
        if self._started:
            raise RuntimeError("collector already started")

        tool_id = self._config.tool_id
        try:
            sys.monitoring.use_tool_id(tool_id, CALLTRACE_TOOL_NAME)
        except ValueError as e:
            raise ToolIdUnavailableError(tool_id) from e

        self._started = True

        sys.monitoring.register_callback(tool_id, _EVENTS.PY_START, self._on_py_start)
        sys.monitoring.register_callback(tool_id, _EVENTS.PY_RETURN, self._on_py_return)
        sys.monitoring.register_callback(tool_id, _EVENTS.PY_YIELD, self._on_py_yield)
        sys.monitoring.register_callback(tool_id, _EVENTS.PY_UNWIND, self._on_py_unwind)

        # DISABLE from an earlier session may hide code this filter traces
        sys.monitoring.restart_events()
        sys.monitoring.set_events(tool_id, _TRACKED_EVENTS)
        logger.debug("monitoring started (tool_id=%d)", tool_id)

    def stop(self) -> None:
        """Unregister callbacks and free the tool ID.

        Raises:
            RuntimeError: If not started
        """
        if not self._started:
            raise RuntimeError("collector not started")

        tool_id = self._config.tool_id
        sys.monitoring.set_events(tool_id, 0)
        for event in (_EVENTS.PY_START, _EVENTS.PY_RETURN, _EVENTS.PY_YIELD, _EVENTS.PY_UNWIND):
            sys.monitoring.register_callback(tool_id, event, None)
        sys.monitoring.free_tool_id(tool_id)

        self._started = False
        logger.debug("monitoring stopped (tool_id=%d)", tool_id)

    def check_pending_error(self) -> None:
        """Raise the first fault captured during collection. Call AFTER stop().

        Raises:
            CallTraceError: Consistency fault from the call graph, unchanged.
            CallbackError: Any other exception raised while recording.
        """
        with self._lock:
            error = self._pending_error
        if error is None:
            return
        if isinstance(error, CallTraceError):
            raise error
        raise CallbackError(error)

    # =========================================================================
    # Callbacks
    # =========================================================================

    def _on_py_start(self, code: types.CodeType, instruction_offset: int) -> object:
        """Callback for function entry (PY_START event).

        Returns:
            sys.monitoring.DISABLE for untraced code, None otherwise
        """
        if not _is_method_code(code) or not self._is_traced(code.co_filename):
            return sys.monitoring.DISABLE
        if self.has_pending_error:
            return None

        frame = _monitored_frame(code)
        if frame is None:
            return None
        caller = self._caller_frame(frame)
        if caller is None or caller.f_lineno is None:
            return None

        event = CallEvent(
            caller_file=caller.f_code.co_filename,
            caller_line=caller.f_lineno,
            owner=_owner(code, frame),
            method=code.co_name,
            definition_file=code.co_filename,
            definition_line=code.co_firstlineno,
            arguments=_arguments(code, frame) if self._config.capture_arguments else None,
        )
        if self._dispatch(event) is not None:
            self._open_frames().add(id(frame))
        return None

    def _on_py_return(self, code: types.CodeType, instruction_offset: int, retval: object) -> object:
        """Callback for function return (PY_RETURN event)."""
        if not self._is_traced(code.co_filename):
            return sys.monitoring.DISABLE
        self._close(code, retval)
        return None

    def _on_py_yield(self, code: types.CodeType, instruction_offset: int, retval: object) -> object:
        """Callback for generator/coroutine suspension (PY_YIELD event)."""
        if not self._is_traced(code.co_filename):
            return sys.monitoring.DISABLE
        self._close(code, retval)
        return None

    def _on_py_unwind(self, code: types.CodeType, instruction_offset: int, exception: BaseException) -> None:
        """Callback for exit by exception (PY_UNWIND event). Cannot be disabled."""
        if self._is_traced(code.co_filename):
            self._close(code, None, unwound=True)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _close(self, code: types.CodeType, value: object, *, unwound: bool = False) -> None:
        """Emit return for a frame whose call was recorded. Unwound frames carry no value."""
        if self.has_pending_error:
            return
        frame = _monitored_frame(code)
        if frame is None:
            return
        frames = self._open_frames()
        if id(frame) not in frames:
            return
        frames.discard(id(frame))
        event = ReturnEvent(
            owner=_owner(code, frame),
            method=code.co_name,
            return_value=capture_value(value) if self._config.capture_returns and not unwound else None,
        )
        self._dispatch(event)

    def _dispatch(self, event: Event) -> object:
        """Hand event to recorder. NEVER re-raises into traced code.

        Exception captured in _pending_error (first only); collection
        stops recording after the first fault.
        """
        try:
            return self._recorder.handle(event)
        # BLE001: traced code must not see recorder faults, they surface at stop
        except Exception as exc:  # noqa: BLE001
            with self._lock:
                if self._pending_error is None:
                    self._pending_error = exc
            logger.debug("recording stopped after fault: %s", exc)
            return None

    def _is_traced(self, filename: str) -> bool:
        """Cached PathFilter decision for filename."""
        traced = self._traced_files.get(filename)
        if traced is None:
            traced = self._filter.accepts(filename)
            self._traced_files[filename] = traced
        return traced

    def _caller_frame(self, frame: types.FrameType) -> types.FrameType | None:
        """Nearest enclosing frame in a traced file."""
        caller = frame.f_back
        while caller is not None and not self._is_traced(caller.f_code.co_filename):
            caller = caller.f_back
        return caller

    def _open_frames(self) -> set[int]:
        """Ids of frames with an open recorded call, current thread."""
        try:
            return self._local.frames
        except AttributeError:
            frames: set[int] = set()
            self._local.frames = frames
            return frames


def _monitored_frame(code: types.CodeType) -> types.FrameType | None:
    """Frame executing code: nearest frame above the callback running it."""
    frame: types.FrameType | None = sys._getframe(1)  # noqa: SLF001
    while frame is not None and frame.f_code is not code:
        frame = frame.f_back
    return frame


def _is_method_code(code: types.CodeType) -> bool:
    """Named function or method body.

    Module and class bodies lack CO_NEWLOCALS. Lambdas, generator expressions
    and comprehensions are named <...> and may share co_firstlineno with the
    enclosing def.
    """
    return bool(code.co_flags & inspect.CO_NEWLOCALS) and not code.co_name.startswith("<")


def _owner(code: types.CodeType, frame: types.FrameType) -> str:
    """Owning type of a method: enclosing qualname, or module for functions."""
    qualname = code.co_qualname
    if "." in qualname:
        return qualname.rsplit(".", 1)[0]
    module = frame.f_globals.get("__name__")
    return module if isinstance(module, str) else "<unknown>"


def _arguments(code: types.CodeType, frame: types.FrameType) -> dict[str, CapturedValue]:
    """Captured arguments by name. At entry only parameters are bound."""
    count = code.co_argcount + code.co_kwonlyargcount
    if code.co_flags & inspect.CO_VARARGS:
        count += 1
    if code.co_flags & inspect.CO_VARKEYWORDS:
        count += 1
    local_vars = frame.f_locals
    return {name: capture_value(local_vars[name]) for name in code.co_varnames[:count] if name in local_vars}

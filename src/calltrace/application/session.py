"""Tracing session: explicit enable/disable with guaranteed teardown."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from calltrace.application.collectors.monitor import MonitoringCollector
from calltrace.application.config import TraceConfig
from calltrace.application.recorder import TraceRecorder
from calltrace.domain.exceptions import (
    AlreadyActiveError,
    CallTraceError,
    GraphFinalizedError,
    NotActiveError,
    NotExitedError,
)
from calltrace.domain.model.call_graph import CallGraph

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from types import TracebackType

    from calltrace.domain.model.call_graph import FrozenCallGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TraceHandle:
    """Handle to the finalized graph. Externally immutable, single-write internal.

    Result available after context exit via .result property.
    Raises NotExitedError if accessed before context exit.
    """

    _result_value: FrozenCallGraph | None = None

    @property
    def result(self) -> FrozenCallGraph:
        """Get finalized graph. Available only after context exit.

        Raises:
            NotExitedError: Context not exited yet.
        """
        if self._result_value is None:
            raise NotExitedError
        return self._result_value


class TraceSession:
    """One tracing session: enable → traced work → disable → frozen graph.

    Contracts:
        - FAIL-FIRST: AlreadyActiveError on double enable, NotActiveError on
          disable without enable
        - Single use: the graph is finalized by disable()
        - Teardown: used as context manager, disable() runs on every exit path
        - A consistency fault captured during tracing is raised by disable()

    Usage:
        with TraceSession(config) as session:
            do_work()
        graph = session.result
    """

    def __init__(self, config: TraceConfig | None = None) -> None:
        """Initialize session.

        Args:
            config: Session configuration. Uses defaults if None.
        """
        self._config = config or TraceConfig()
        self._graph = CallGraph(policy=self._config.policy)
        self._collector: MonitoringCollector | None = None
        self._result: FrozenCallGraph | None = None

    @property
    def config(self) -> TraceConfig:
        """Session configuration."""
        return self._config

    @property
    def graph(self) -> CallGraph:
        """Mutable graph being built."""
        return self._graph

    @property
    def is_active(self) -> bool:
        """Tracing enabled."""
        return self._collector is not None

    @property
    def result(self) -> FrozenCallGraph:
        """Finalized graph.

        Raises:
            NotExitedError: Session not disabled yet.
        """
        if self._result is None:
            raise NotExitedError
        return self._result

    def enable(self) -> None:
        """Start receiving call/return events.

        Raises:
            AlreadyActiveError: Session already enabled.
            GraphFinalizedError: Session already used.
            ToolIdUnavailableError: sys.monitoring tool ID in use.
        """
        if self._collector is not None:
            raise AlreadyActiveError
        if self._graph.is_finalized:
            raise GraphFinalizedError

        collector = MonitoringCollector(TraceRecorder(self._graph), self._config)
        collector.start()
        self._collector = collector
        logger.debug("trace session enabled")

    def disable(self) -> FrozenCallGraph:
        """Stop receiving events and finalize the graph.

        Events are always unsubscribed before any fault is raised.

        Returns:
            Finalized graph.

        Raises:
            NotActiveError: Session not enabled.
            CallTraceError: Consistency fault captured during tracing, or
                unterminated calls at finalize (STRICT policy).
        """
        collector = self._collector
        if collector is None:
            raise NotActiveError
        self._collector = None
        collector.stop()
        collector.check_pending_error()

        self._result = self._graph.finalize()
        logger.debug(
            "trace session disabled: %d call(s) in %d file(s)",
            self._result.call_count,
            len(self._result.files),
        )
        return self._result

    def __enter__(self) -> TraceSession:
        self.enable()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.disable()
            return
        # Traced work failed: its exception propagates, tracing faults are logged
        try:
            self.disable()
        except CallTraceError as fault:
            logger.warning("trace session fault while %s propagates: %s", exc_type.__name__, fault)


@contextmanager
def trace(config: TraceConfig | None = None) -> Iterator[TraceHandle]:
    """Context manager for tracing code blocks.

    Usage:
        with trace() as handle:
            do_work()
        print(handle.result.calls)

    Raises:
        ToolIdUnavailableError: Another session holds the tool ID.
    """
    session = TraceSession(config)
    handle = TraceHandle()
    with session:
        yield handle
    object.__setattr__(handle, "_result_value", session.result)


def track[T](target: Callable[[], T], config: TraceConfig | None = None) -> tuple[T, FrozenCallGraph]:
    """Trace callable execution, return its result and the finalized graph.

    Args:
        target: Zero-argument callable to trace.
        config: Session configuration.

    Returns:
        (target_result, graph)
    """
    session = TraceSession(config)
    with session:
        result = target()
    return result, session.result

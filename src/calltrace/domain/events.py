"""Domain layer: immutable value objects for tracing events.

Events are produced by the monitoring collector and consumed by the recorder.
All objects frozen, invariants validated in __post_init__.
"""

from __future__ import annotations

import builtins
import reprlib
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class _BoundedRepr(reprlib.Repr):
    """reprlib.Repr with a fixed rendering for a failing __repr__.

    The stock fallback embeds the object address, which differs between runs.
    """

    def repr_instance(self, x: object, level: int) -> str:
        try:
            s = builtins.repr(x)
        except Exception as e:  # noqa: BLE001 - user __repr__ is arbitrary code
            return f"<{type(x).__name__}: repr failed: {type(e).__name__}>"
        if len(s) > self.maxother:
            i = max(0, (self.maxother - 3) // 2)
            j = max(0, self.maxother - 3 - i)
            s = s[:i] + self.fillvalue + s[len(s) - j :]
        return s


# Bounded repr: captured values are display-only
_REPR = _BoundedRepr()
_REPR.maxstring = 80
_REPR.maxother = 80
_REPR.maxlevel = 3


class ValueKind(Enum):
    """Tag of a captured runtime value."""

    NULL = "null"
    SCALAR = "scalar"
    TEXT = "text"
    STRUCTURED = "structured"


@dataclass(frozen=True, slots=True)
class CapturedValue:
    """Opaque display form of an argument or return value.

    Graph logic never branches on it.

    Attributes:
        kind: Value tag.
        text: Bounded textual rendering.
    """

    kind: ValueKind
    text: str

    def __str__(self) -> str:
        """Return rendered text."""
        return self.text


NULL_VALUE = CapturedValue(kind=ValueKind.NULL, text="None")


def capture_value(value: object) -> CapturedValue:
    """Build CapturedValue from arbitrary object.

    A failing __repr__ renders as <Type: repr failed: Error>, also when the
    object is nested inside a container.
    """
    if value is None:
        return NULL_VALUE
    if isinstance(value, bool | int | float | complex):
        kind = ValueKind.SCALAR
    elif isinstance(value, str | bytes):
        kind = ValueKind.TEXT
    else:
        kind = ValueKind.STRUCTURED
    return CapturedValue(kind=kind, text=_REPR.repr(value))


@dataclass(frozen=True, slots=True)
class CallEvent:
    """CALL event: invocation observed at a call site.

    Attributes:
        caller_file: File containing the call site.
        caller_line: Call site line (1-based).
        owner: Owning type or module of the callee.
        method: Callee method name.
        definition_file: File containing the callee definition.
        definition_line: First line of the callee definition (1-based).
        arguments: Captured arguments by name, None if not captured.
    """

    caller_file: str
    caller_line: int
    owner: str
    method: str
    definition_file: str
    definition_line: int
    arguments: Mapping[str, CapturedValue] | None = None

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if self.caller_line < 1:
            raise ValueError(f"caller_line must be >= 1, got {self.caller_line}")
        if self.definition_line < 1:
            raise ValueError(f"definition_line must be >= 1, got {self.definition_line}")
        if not self.method:
            raise ValueError("method must not be empty")
        if self.arguments is not None and not isinstance(self.arguments, MappingProxyType):
            object.__setattr__(self, "arguments", MappingProxyType(dict(self.arguments)))


@dataclass(frozen=True, slots=True)
class ReturnEvent:
    """RETURN event: invocation completed (returned, yielded or unwound).

    Attributes:
        owner: Owning type or module of the returning method.
        method: Returning method name.
        return_value: Captured return value, None if not captured.
    """

    owner: str
    method: str
    return_value: CapturedValue | None = None


Event = CallEvent | ReturnEvent


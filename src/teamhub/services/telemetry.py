"""Service call tracing for ``--verbose`` runs.

Every public service method is wrapped with :func:`traced`. With tracing
off the wrapper costs one ContextVar lookup. With tracing on it records a
span tree: the service call, nested service calls it makes, and
``trace_span`` blocks such as ``task_query``. The span is stamped with
the outcome of the call and attached to ``ServiceResult.meta["telemetry"]``
for the renderer to print.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from teamhub.services.result import ServiceResult

_tracing: ContextVar[bool] = ContextVar("teamhub_tracing", default=False)
_active: ContextVar[Span | None] = ContextVar("teamhub_active_span", default=None)

_log = structlog.get_logger("teamhub.telemetry")


@dataclass
class Span:
    """One timed step of a service call."""

    name: str
    children: list[Span] = field(default_factory=list)
    annotations: dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None

    @property
    def duration_ms(self) -> float:
        if self.finished is None:
            return 0.0
        return (self.finished - self.started) * 1000

    def end(self) -> None:
        self.finished = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        node: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            node["annotations"] = dict(self.annotations)
        if self.children:
            node["children"] = [child.to_dict() for child in self.children]
        return node


@contextmanager
def _activate(span: Span) -> Iterator[Span]:
    token = _active.set(span)
    try:
        yield span
    finally:
        span.end()
        _active.reset(token)


@contextmanager
def trace_span(name: str) -> Iterator[Span | None]:
    """Time a block as a child of the running service call.

    Yields None when tracing is off or no traced call is running.
    """
    parent = _active.get() if _tracing.get() else None
    if parent is None:
        yield None
        return
    child = Span(name=name)
    parent.children.append(child)
    with _activate(child):
        yield child


def _stamp_outcome(span: Span, result: ServiceResult) -> ServiceResult:
    span.annotate("ok", result.ok)
    if result.error is not None:
        span.annotate("error", str(result.error.code))
    meta = {**(result.meta or {}), "telemetry": span.to_dict()}
    return result.model_copy(update={"meta": meta})


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Record a span for a service method and attach it to its result."""

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _tracing.get():
            return func(*args, **kwargs)

        span = Span(name=func.__qualname__)
        parent = _active.get()
        if parent is not None:
            parent.children.append(span)
        raised = True
        try:
            with _activate(span):
                result = func(*args, **kwargs)
            raised = False
        finally:
            _log.debug(
                "service.call",
                call=span.name,
                duration_ms=round(span.duration_ms, 2),
                raised=raised,
            )

        if isinstance(result, ServiceResult):
            return _stamp_outcome(span, result)  # type: ignore[return-value]
        return result

    return wrapper


def enable_telemetry() -> None:
    """Turn tracing on for the current context (``--verbose``)."""
    _tracing.set(True)


def disable_telemetry() -> None:
    _tracing.set(False)


def get_current_span() -> Span | None:
    """The innermost running span, for ad-hoc annotation."""
    return _active.get() if _tracing.get() else None

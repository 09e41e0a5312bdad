"""Per-request correlation ids shared by log records and spans."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, replace
import secrets


@dataclass(frozen=True, slots=True)
class RequestContext:
    trace_id: str
    span_id: str
    route: str | None = None

    def with_span(self, span_id: str) -> RequestContext:
        return replace(self, span_id=span_id)


_current: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


def new_trace_id() -> str:
    """32 hex chars, the W3C trace-id width."""
    return secrets.token_hex(16)


def new_span_id() -> str:
    return secrets.token_hex(8)


def current_context() -> RequestContext:
    """Return the active context, binding a fresh one outside any request."""
    ctx = _current.get()
    if ctx is None:
        ctx = RequestContext(new_trace_id(), new_span_id())
        _current.set(ctx)
    return ctx


def bind_context(trace_id: str | None = None, *, route: str | None = None) -> RequestContext:
    """Start a new context for the current task, reusing ``trace_id`` when given."""
    ctx = RequestContext(trace_id or new_trace_id(), new_span_id(), route)
    _current.set(ctx)
    return ctx


def bind_span(span_id: str) -> None:
    _current.set(current_context().with_span(span_id))

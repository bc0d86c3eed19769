"""Trace context for correlating log lines of one refresh cycle or request."""

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

_trace_id_context: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "trace_id", default=None
)


def get_current_trace() -> str | None:
    """Return the trace id active in this context, if any."""
    return _trace_id_context.get()


@contextmanager
def trace_scope(trace_id: str | None = None) -> Iterator[str]:
    """
    Run a block under a trace id, restoring the previous one afterwards.

    Args:
        trace_id: Id to use; a new UUID4 string is generated when omitted

    Yields:
        The active trace id
    """
    trace_id = trace_id or str(uuid.uuid4())
    token = _trace_id_context.set(trace_id)
    try:
        yield trace_id
    finally:
        _trace_id_context.reset(token)

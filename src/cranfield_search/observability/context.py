"""Run context propagation for log correlation across worker threads."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar


# Each thread (and each executor task) sees its own value.
run_context: ContextVar[dict | None] = ContextVar("run_context", default=None)


def get_run_context() -> dict:
    """Get the current run context (``run_tag``, ``query_id``), possibly empty."""
    return dict(run_context.get() or {})


@contextmanager
def bound_context(**values: object) -> Iterator[None]:
    """Bind ``values`` to the run context for the duration of a block."""
    ctx = run_context.get() or {}
    token = run_context.set({**ctx, **values})
    try:
        yield
    finally:
        run_context.reset(token)

"""Logging and run-context helpers."""

from cranfield_search.observability.context import bound_context, get_run_context
from cranfield_search.observability.logging import ContextTextFormatter, JsonFormatter, configure_logging


__all__ = [
    "ContextTextFormatter",
    "JsonFormatter",
    "bound_context",
    "configure_logging",
    "get_run_context",
]

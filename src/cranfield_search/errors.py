"""Exception hierarchy shared by the indexing, search and evaluation layers."""

from __future__ import annotations


class SearchError(ValueError):
    """Base class for recoverable retrieval errors."""


class IndexBuildError(SearchError):
    """Raised when an index cannot be constructed from the given collection."""


class IndexStoreError(SearchError):
    """Raised when a persisted index cannot be read back."""


class QueryError(SearchError):
    """Raised when a single query cannot be evaluated."""


class EvaluationError(SearchError):
    """Raised when the external evaluation tool fails or cannot be found."""

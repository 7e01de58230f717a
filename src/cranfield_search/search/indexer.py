"""Bulk index construction.

``build_index`` is the single entry point used by the experiment pipeline: it
binds an analyzer to every indexed field, streams the collection through an
``IndexWriter`` exactly once and returns the frozen ``InvertedIndex``. Nothing
is persisted here; callers that want a file hand the result to ``IndexStore``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
import time

from cranfield_search.errors import IndexBuildError
from cranfield_search.search.models import Document
from cranfield_search.search.schema import INDEXED_FIELDS, create_cranfield_schema
from cranfield_search.search.storage import IndexWriter, InvertedIndex


logger = logging.getLogger(__name__)


def build_index(
    documents: Iterable[Document],
    field_analyzers: Mapping[str, str] | None = None,
    *,
    default_analyzer: str = "english",
) -> InvertedIndex:
    """Index ``documents`` in encounter order.

    Args:
        documents: The collection. Fields a record lacks are indexed as empty text.
        field_analyzers: Analyzer name per field; fields not listed use
            ``default_analyzer``.
        default_analyzer: Registered analyzer name for unlisted fields.

    Raises:
        IndexBuildError: The collection is empty or repeats a document id.
        ValueError: An analyzer name is not registered.
    """

    overrides = dict(field_analyzers or {})
    unknown_fields = sorted(set(overrides) - set(INDEXED_FIELDS))
    if unknown_fields:
        msg = f"Cannot bind analyzers to non-indexed fields: {unknown_fields}"
        raise ValueError(msg)

    schema = create_cranfield_schema(default_analyzer, overrides=overrides)
    writer = IndexWriter(schema)

    started = time.perf_counter()
    writer.add_documents(documents)
    if len(writer) == 0:
        raise IndexBuildError("Cannot build an index from an empty collection")

    index = writer.build()
    elapsed = time.perf_counter() - started
    logger.info(
        "Indexed %d documents in %.2fs (vocabulary: %s)",
        index.doc_count,
        elapsed,
        ", ".join(f"{name}={len(index.vocabulary(name))}" for name in INDEXED_FIELDS),
    )
    return index

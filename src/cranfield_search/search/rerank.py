"""Title-boost reranking of a base ranked list."""

from __future__ import annotations

from collections.abc import Sequence
import logging

from cranfield_search.search.bm25_engine import BM25SearchEngine
from cranfield_search.search.models import ScoredDocument


logger = logging.getLogger(__name__)

DEFAULT_RERANK_BOOST = 0.3


def rerank(
    base_results: Sequence[ScoredDocument],
    query_text: str,
    engine: BM25SearchEngine,
    boost: float = DEFAULT_RERANK_BOOST,
    *,
    field_name: str = "title",
) -> list[ScoredDocument]:
    """Add ``boost * title match score`` to every base score and re-sort.

    The title score is what the query's ``field_name`` parse scores against
    that single document. Sorting is stable, so documents whose new scores tie
    keep their base rank order.
    """

    if boost < 0:
        msg = f"rerank boost must be non-negative, got {boost}"
        raise ValueError(msg)

    title_query = engine.parse(query_text, field_name)
    rescored = [
        ScoredDocument(
            doc_ordinal=hit.doc_ordinal,
            score=hit.score + boost * engine.score_document(title_query, hit.doc_ordinal),
        )
        for hit in base_results
    ]
    return sorted(rescored, key=lambda hit: -hit.score)

"""BM25 / field-weighted BM25 scoring over an ``InvertedIndex``."""

from __future__ import annotations

from bisect import bisect_left
from collections import defaultdict
from collections.abc import Mapping
import heapq

from cranfield_search.errors import QueryError
from cranfield_search.search.models import ScoredDocument
from cranfield_search.search.query import (
    And,
    Or,
    Query,
    QueryNode,
    TermClause,
    iter_clauses,
    parse_fields,
    parse_query,
)
from cranfield_search.search.stats import DEFAULT_B, DEFAULT_K1, bm25, calculate_idf
from cranfield_search.search.storage import InvertedIndex


DEFAULT_TOP_K = 1000


class BM25SearchEngine:
    """Compute BM25 scores for documents of one read-only index.

    The engine holds no per-query state, so a single instance can serve
    concurrent searches from several threads.
    """

    def __init__(
        self,
        index: InvertedIndex,
        *,
        k1: float = DEFAULT_K1,
        b: float = DEFAULT_B,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        if k1 <= 0:
            msg = f"k1 must be positive, got {k1}"
            raise ValueError(msg)
        if not 0.0 <= b <= 1.0:
            msg = f"b must be within [0, 1], got {b}"
            raise ValueError(msg)
        if top_k <= 0:
            msg = f"top_k must be positive, got {top_k}"
            raise ValueError(msg)
        self.index = index
        self.k1 = k1
        self.b = b
        self.top_k = top_k

    def parse(self, text: str, field_name: str = "content", *, boost: float = 1.0) -> Or:
        """Parse free text against one field using the analyzer the index was built with."""
        return parse_query(text, field_name, self.index.analyzers, boost=boost)

    def parse_fields(self, text: str, field_boosts: Mapping[str, float]) -> Or:
        """Parse free text against several fields, weighting each field's sub-query."""
        return parse_fields(text, field_boosts, self.index.analyzers)

    def search(self, query: Query | QueryNode, *, limit: int | None = None) -> list[ScoredDocument]:
        """Return the top documents for ``query``, best first.

        Ties are broken by ascending ordinal. A query without clauses, or whose
        terms are all unknown, returns an empty list.
        Raises ``QueryError`` when a clause names a field the index lacks.
        """

        tree = query.tree if isinstance(query, Query) else query
        limit = self.top_k if limit is None else limit
        if limit <= 0:
            return []
        self._check_fields(tree)
        scores = self._evaluate(tree)
        if not scores:
            return []
        top_items = heapq.nsmallest(limit, scores.items(), key=lambda item: (-item[1], item[0]))
        return [ScoredDocument(doc_ordinal=ordinal, score=score) for ordinal, score in top_items]

    def score_document(self, query: Query | QueryNode, ordinal: int) -> float:
        """Return the score ``query`` gives a single document, 0.0 when it does not match."""

        tree = query.tree if isinstance(query, Query) else query
        self._check_fields(tree)
        score = self._evaluate_document(tree, ordinal)
        return 0.0 if score is None else score

    def term_weight(self, clause: TermClause, frequency: int, field_length: int) -> float:
        """BM25 contribution of one clause for a document, boost included."""

        stats = self.index.field_stats(clause.field)
        idf = calculate_idf(self.index.document_frequency(clause.field, clause.term), self.index.doc_count)
        weight = bm25(frequency, field_length, stats.average_length, k1=self.k1, b=self.b)
        return idf * weight * clause.boost

    def _check_fields(self, tree: QueryNode) -> None:
        unknown = sorted({clause.field for clause in iter_clauses(tree)} - set(self.index.postings))
        if unknown:
            msg = f"Query references fields the index does not have: {unknown}"
            raise QueryError(msg)

    def _evaluate(self, node: QueryNode) -> dict[int, float]:
        if isinstance(node, TermClause):
            scores: dict[int, float] = {}
            lengths = self.index.field_lengths.get(node.field, ())
            for posting in self.index.get_postings(node.field, node.term):
                scores[posting.doc_ordinal] = self.term_weight(node, posting.frequency, lengths[posting.doc_ordinal])
            return scores

        child_scores = [self._evaluate(child) for child in node.children]
        if isinstance(node, And):
            if not child_scores:
                return {}
            matched = set(child_scores[0]).intersection(*child_scores[1:])
            return {
                ordinal: node.boost * sum(scores[ordinal] for scores in child_scores)
                for ordinal in sorted(matched)
            }

        combined: dict[int, float] = defaultdict(float)
        for scores in child_scores:
            for ordinal, score in scores.items():
                combined[ordinal] += score
        return {ordinal: node.boost * score for ordinal, score in combined.items()}

    def _evaluate_document(self, node: QueryNode, ordinal: int) -> float | None:
        if isinstance(node, TermClause):
            postings = self.index.get_postings(node.field, node.term)
            position = bisect_left(postings, ordinal, key=lambda posting: posting.doc_ordinal)
            if position == len(postings) or postings[position].doc_ordinal != ordinal:
                return None
            field_length = self.index.field_length(node.field, ordinal)
            return self.term_weight(node, postings[position].frequency, field_length)

        child_scores = [self._evaluate_document(child, ordinal) for child in node.children]
        matched = [score for score in child_scores if score is not None]
        if not matched or (isinstance(node, And) and len(matched) < len(child_scores)):
            return None
        return node.boost * sum(matched)

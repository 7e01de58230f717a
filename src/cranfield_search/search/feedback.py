"""Pseudo-relevance feedback (Rocchio-style) query expansion.

The top documents of a first retrieval pass are treated as relevant. Their
terms are weighted by TF-IDF and the best ones are OR-ed into the original
query with boosts scaled into ``[0.5 * beta, beta]``:

    expanded = alpha * original + sum(beta * (0.5 + 0.5 * w(t) / max_w) * t)

There is no negative-feedback component.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging

from cranfield_search.search.models import ScoredDocument
from cranfield_search.search.query import Or, Query, TermClause, query_terms, with_boost
from cranfield_search.search.stats import classic_idf
from cranfield_search.search.storage import InvertedIndex


logger = logging.getLogger(__name__)

SearchFn = Callable[[Query], Sequence[ScoredDocument]]

DEFAULT_ALPHA = 1.0
DEFAULT_BETA = 0.75
DEFAULT_FEEDBACK_DOCS = 10
DEFAULT_EXPANSION_TERMS = 15
MIN_TERM_LENGTH = 3


@dataclass(frozen=True)
class ExpansionTerm:
    term: str
    weight: float
    boost: float


def weigh_feedback_terms(
    index: InvertedIndex,
    feedback: Sequence[ScoredDocument],
    *,
    field_name: str = "content",
) -> dict[str, float]:
    """Return ``term -> tf * classic_idf`` over the feedback pool.

    Each feedback document contributes its title and content text, analyzed
    with ``field_name``'s analyzer. Terms shorter than three characters and
    terms the field never indexed are dropped. Dict order is first-encounter
    order.
    """

    analyzers = index.analyzers
    counts: dict[str, int] = {}
    for hit in feedback:
        text = f"{index.stored_text(hit.doc_ordinal, 'title')} {index.stored_text(hit.doc_ordinal, 'content')}"
        for term in analyzers.tokenize(field_name, text):
            if len(term) < MIN_TERM_LENGTH:
                continue
            counts[term] = counts.get(term, 0) + 1

    weights: dict[str, float] = {}
    for term, tf in counts.items():
        df = index.document_frequency(field_name, term)
        if df <= 0:
            continue
        weights[term] = tf * classic_idf(df, index.doc_count)
    return weights


def select_expansion_terms(
    weights: dict[str, float],
    exclude: set[str],
    *,
    beta: float,
    max_terms: int,
) -> list[ExpansionTerm]:
    """Pick the heaviest terms not in ``exclude`` and assign their boosts.

    The boost normalizer is the heaviest weight of the whole pool, including
    excluded terms.
    """

    if max_terms <= 0 or not weights:
        return []
    max_weight = max(weights.values())
    candidates = [(term, weight) for term, weight in weights.items() if term not in exclude]
    # sorted() is stable: equal weights keep first-encounter order.
    candidates = sorted(candidates, key=lambda item: -item[1])[:max_terms]
    selected = []
    for term, weight in candidates:
        norm = weight / max_weight if max_weight > 0 else 0.0
        selected.append(ExpansionTerm(term=term, weight=weight, boost=beta * (0.5 + 0.5 * norm)))
    return selected


class RocchioExpander:
    """Expands queries from their own top-ranked documents."""

    def __init__(
        self,
        index: InvertedIndex,
        *,
        alpha: float = DEFAULT_ALPHA,
        beta: float = DEFAULT_BETA,
        feedback_docs: int = DEFAULT_FEEDBACK_DOCS,
        max_expansion_terms: int = DEFAULT_EXPANSION_TERMS,
        field_name: str = "content",
    ) -> None:
        if alpha < 0 or beta < 0:
            msg = f"alpha and beta must be non-negative, got alpha={alpha} beta={beta}"
            raise ValueError(msg)
        if feedback_docs <= 0:
            msg = f"feedback_docs must be positive, got {feedback_docs}"
            raise ValueError(msg)
        if max_expansion_terms < 0:
            msg = f"max_expansion_terms must be non-negative, got {max_expansion_terms}"
            raise ValueError(msg)
        self.index = index
        self.alpha = alpha
        self.beta = beta
        self.feedback_docs = feedback_docs
        self.max_expansion_terms = max_expansion_terms
        self.field_name = field_name

    def expand(self, query: Query, search_fn: SearchFn) -> Query:
        """Return ``query`` with feedback terms OR-ed in.

        Falls back to the unchanged query when the first pass finds nothing.
        """

        feedback = list(search_fn(query))[: self.feedback_docs]
        if not feedback:
            logger.debug("Query %s: empty feedback pool, keeping original query", query.id)
            return query

        weights = weigh_feedback_terms(self.index, feedback, field_name=self.field_name)
        original_terms = query_terms(query.tree) | set(self.index.analyzers.tokenize(self.field_name, query.raw_text))
        expansion = select_expansion_terms(
            weights,
            original_terms,
            beta=self.beta,
            max_terms=self.max_expansion_terms,
        )
        logger.debug(
            "Query %s: %d feedback docs, expansion terms %s",
            query.id,
            len(feedback),
            [entry.term for entry in expansion],
        )

        clauses = tuple(TermClause(self.field_name, entry.term, entry.boost) for entry in expansion)
        return query.with_tree(Or((with_boost(query.tree, self.alpha), *clauses)))


def expand(
    query: Query,
    index: InvertedIndex,
    search_fn: SearchFn,
    alpha: float = DEFAULT_ALPHA,
    beta: float = DEFAULT_BETA,
    feedback_docs: int = DEFAULT_FEEDBACK_DOCS,
    max_expansion_terms: int = DEFAULT_EXPANSION_TERMS,
) -> Query:
    """Functional form of ``RocchioExpander.expand``."""

    expander = RocchioExpander(
        index,
        alpha=alpha,
        beta=beta,
        feedback_docs=feedback_docs,
        max_expansion_terms=max_expansion_terms,
    )
    return expander.expand(query, search_fn)

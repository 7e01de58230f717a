"""Unit tests for Rocchio pseudo-relevance feedback."""

from __future__ import annotations

import math

import pytest

from cranfield_search.search.bm25_engine import BM25SearchEngine
from cranfield_search.search.feedback import (
    ExpansionTerm,
    RocchioExpander,
    expand,
    select_expansion_terms,
    weigh_feedback_terms,
)
from cranfield_search.search.indexer import build_index
from cranfield_search.search.models import ScoredDocument
from cranfield_search.search.query import Or, Query, TermClause, query_terms


def _query(engine: BM25SearchEngine, text: str, query_id: int = 1) -> Query:
    return Query(id=query_id, raw_text=text, tree=engine.parse(text))


def test_weigh_feedback_terms_uses_title_and_content(two_documents) -> None:
    index = build_index(two_documents)
    weights = weigh_feedback_terms(index, [ScoredDocument(0, 1.0)])

    idf = math.log(3 / 2) + 1
    # "design" only occurs in titles, so the content field has never seen it
    assert weights == {
        "wing": pytest.approx(2 * idf),
        "generate": pytest.approx(idf),
        "lift": pytest.approx(idf),
    }


def test_select_expansion_terms_normalizes_by_pool_maximum() -> None:
    weights = {"flow": 4.0, "plate": 2.0, "shock": 2.0, "wave": 1.0}
    selected = select_expansion_terms(weights, {"flow"}, beta=1.0, max_terms=2)
    # "plate" and "shock" tie, first-encounter order wins
    assert selected == [
        ExpansionTerm("plate", 2.0, 0.75),
        ExpansionTerm("shock", 2.0, 0.75),
    ]


def test_select_expansion_terms_empty_inputs() -> None:
    assert select_expansion_terms({}, set(), beta=0.75, max_terms=5) == []
    assert select_expansion_terms({"flow": 1.0}, set(), beta=0.75, max_terms=0) == []


class TestRocchioExpander:
    def test_expansion_never_duplicates_original_terms(self, english_index):
        engine = BM25SearchEngine(english_index)
        query = _query(engine, "wing aircraft")
        expander = RocchioExpander(english_index, feedback_docs=3, max_expansion_terms=5)

        expanded = expander.expand(query, lambda q: engine.search(q, limit=3))

        original, *additions = expanded.tree.children
        assert original == Or(query.tree.children, boost=1.0)
        assert 0 < len(additions) <= 5
        added_terms = [clause.term for clause in additions]
        assert len(added_terms) == len(set(added_terms))
        assert not set(added_terms) & query_terms(query.tree)

    def test_expansion_boosts_are_scaled_into_beta_range(self, english_index):
        engine = BM25SearchEngine(english_index)
        expander = RocchioExpander(english_index, beta=0.8, feedback_docs=2, max_expansion_terms=10)
        expanded = expander.expand(_query(engine, "flow"), lambda q: engine.search(q, limit=2))
        for clause in expanded.tree.children[1:]:
            assert isinstance(clause, TermClause)
            assert clause.field == "content"
            assert 0.4 <= clause.boost <= 0.8

    def test_alpha_weights_the_original_query(self, english_index):
        engine = BM25SearchEngine(english_index)
        expander = RocchioExpander(english_index, alpha=2.5, max_expansion_terms=0)
        expanded = expander.expand(_query(engine, "wing"), engine.search)
        assert expanded.tree.children == (Or(engine.parse("wing").children, boost=2.5),)

    def test_expanded_query_keeps_id_and_text(self, english_index):
        engine = BM25SearchEngine(english_index)
        query = _query(engine, "wing", query_id=42)
        expanded = RocchioExpander(english_index).expand(query, engine.search)
        assert (expanded.id, expanded.raw_text) == (42, "wing")

    def test_empty_feedback_pool_returns_original_query(self, english_index):
        engine = BM25SearchEngine(english_index)
        query = _query(engine, "zeppelin")
        assert RocchioExpander(english_index).expand(query, engine.search) is query

    def test_only_top_feedback_docs_are_used(self, english_index):
        engine = BM25SearchEngine(english_index)
        seen: list[int] = []

        def search_fn(q: Query) -> list[ScoredDocument]:
            hits = engine.search(q)
            seen.append(len(hits))
            return hits

        expander = RocchioExpander(english_index, feedback_docs=1, max_expansion_terms=50)
        expanded = expander.expand(_query(engine, "wing"), search_fn)
        top_doc_terms = set(english_index.analyzers.tokenize("content", "wing design for supersonic aircraft"))
        top_doc_terms |= set(
            english_index.analyzers.tokenize(
                "content", "the wing generates lift at supersonic speeds and the wing shape matters"
            )
        )
        assert seen and seen[0] > 1
        assert {clause.term for clause in expanded.tree.children[1:]} <= top_doc_terms

    @pytest.mark.parametrize(
        "kwargs",
        [{"alpha": -1.0}, {"beta": -0.1}, {"feedback_docs": 0}, {"max_expansion_terms": -1}],
    )
    def test_invalid_parameters(self, english_index, kwargs):
        with pytest.raises(ValueError):
            RocchioExpander(english_index, **kwargs)


def test_functional_expand_matches_expander(english_index) -> None:
    engine = BM25SearchEngine(english_index)
    query = _query(engine, "boundary flow")
    search_fn = lambda q: engine.search(q, limit=2)  # noqa: E731
    via_function = expand(query, english_index, search_fn, 1.0, 0.75, 2, 4)
    via_class = RocchioExpander(english_index, feedback_docs=2, max_expansion_terms=4).expand(query, search_fn)
    assert via_function == via_class

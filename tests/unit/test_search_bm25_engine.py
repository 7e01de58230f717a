"""Unit tests for BM25 scoring and ranking."""

from __future__ import annotations

import io
import math

import pytest

from cranfield_search.errors import QueryError
from cranfield_search.search.bm25_engine import BM25SearchEngine
from cranfield_search.search.indexer import build_index
from cranfield_search.search.models import Document
from cranfield_search.search.query import And, Or, Query, TermClause
from cranfield_search.search.trec import to_run_entries, write_run_entries


def _engine(contents: list[str], **kwargs) -> BM25SearchEngine:
    documents = [Document(id=str(n), fields={"content": text}) for n, text in enumerate(contents, start=1)]
    return BM25SearchEngine(build_index(documents, default_analyzer="standard"), **kwargs)


class TestRoundTrip:
    def test_two_document_run_line(self, two_documents):
        engine = BM25SearchEngine(build_index(two_documents), k1=1.2, b=0.75)
        query = Query(id=1, raw_text="wing lift", tree=engine.parse("wing lift"))

        results = engine.search(query)

        assert [engine.index.document_id(hit.doc_ordinal) for hit in results] == ["1"]
        # Both terms have df=1 of N=2 and both fields have average length
        assert results[0].score == pytest.approx(2 * math.log(2))

        stream = io.StringIO()
        write_run_entries(to_run_entries(1, results, engine.index, "run_english"), stream)
        assert stream.getvalue() == f"1 Q0 1 1 {results[0].score} run_english\n"

    def test_ranks_matching_document_above_other(self, two_documents):
        engine = BM25SearchEngine(build_index(two_documents))
        tree = engine.parse("wing lift engine")
        ranked = [engine.index.document_id(hit.doc_ordinal) for hit in engine.search(tree)]
        assert ranked == ["1", "2"]


class TestScoring:
    def test_higher_term_frequency_scores_higher(self):
        engine = _engine(["wing wing plate", "wing plate plate", "flow"])
        scores = {hit.doc_ordinal: hit.score for hit in engine.search(engine.parse("wing"))}
        assert scores[0] > scores[1] > 0
        assert 2 not in scores

    def test_shorter_field_scores_higher(self):
        engine = _engine(["wing plate", "wing plate flow shock"])
        hits = engine.search(engine.parse("wing"))
        assert [hit.doc_ordinal for hit in hits] == [0, 1]
        assert hits[0].score > hits[1].score

    def test_ties_break_by_ordinal(self):
        engine = _engine(["flat plate", "shock wave", "flat plate"])
        hits = engine.search(engine.parse("plate"))
        assert [hit.doc_ordinal for hit in hits] == [0, 2]
        assert hits[0].score == hits[1].score

    def test_search_is_deterministic(self, english_index):
        engine = BM25SearchEngine(english_index)
        tree = engine.parse_fields("wing flow aircraft", {"title": 2.0, "content": 1.0})
        assert engine.search(tree) == engine.search(tree)

    def test_repeated_query_terms_double_the_score(self):
        engine = _engine(["wing plate", "flow"])
        single = engine.search(engine.parse("wing"))[0].score
        double = engine.search(engine.parse("wing wing"))[0].score
        assert double == pytest.approx(2 * single)

    def test_field_boosts_weight_sub_queries(self, english_index):
        engine = BM25SearchEngine(english_index)
        text = "wing aircraft"
        combined = engine.parse_fields(text, {"title": 2.0, "content": 1.0})
        for hit in engine.search(combined):
            title = engine.score_document(engine.parse(text, "title"), hit.doc_ordinal)
            content = engine.score_document(engine.parse(text, "content"), hit.doc_ordinal)
            assert hit.score == pytest.approx(2.0 * title + content)

    def test_score_document_matches_search(self, english_index):
        engine = BM25SearchEngine(english_index)
        tree = engine.parse("wing flow boundary")
        for hit in engine.search(tree):
            assert engine.score_document(tree, hit.doc_ordinal) == pytest.approx(hit.score)
        assert engine.score_document(tree, english_index.ordinal_of("5")) == 0.0

    def test_and_requires_every_child(self):
        engine = _engine(["wing lift", "wing", "lift"])
        tree = And((TermClause("content", "wing"), TermClause("content", "lift")))
        assert [hit.doc_ordinal for hit in engine.search(tree)] == [0]
        assert engine.score_document(tree, 1) == 0.0

    def test_node_boost_scales_scores(self):
        engine = _engine(["wing plate", "flow"])
        base = engine.search(engine.parse("wing"))[0].score
        boosted = engine.search(engine.parse("wing", boost=3.0))[0].score
        assert boosted == pytest.approx(3 * base)


class TestEdgeCases:
    def test_query_without_terms_returns_nothing(self, english_index):
        engine = BM25SearchEngine(english_index)
        assert engine.search(engine.parse("???")) == []
        assert engine.search(Or(())) == []

    def test_unknown_terms_return_nothing(self, english_index):
        engine = BM25SearchEngine(english_index)
        assert engine.search(engine.parse("zeppelin")) == []

    def test_limit_truncates_results(self, english_index):
        engine = BM25SearchEngine(english_index)
        tree = engine.parse("wing flow aircraft")
        assert len(engine.search(tree, limit=1)) == 1
        assert engine.search(tree, limit=0) == []

    def test_top_k_caps_default_limit(self, english_index):
        engine = BM25SearchEngine(english_index, top_k=2)
        assert len(engine.search(engine.parse("wing flow aircraft heat"))) == 2

    def test_unknown_field_raises_query_error(self, english_index):
        engine = BM25SearchEngine(english_index)
        with pytest.raises(QueryError, match="abstract"):
            engine.search(Or((TermClause("abstract", "wing"),)))

    @pytest.mark.parametrize(
        "kwargs",
        [{"k1": 0.0}, {"k1": -1.0}, {"b": 1.5}, {"b": -0.1}, {"top_k": 0}],
    )
    def test_invalid_parameters(self, english_index, kwargs):
        with pytest.raises(ValueError):
            BM25SearchEngine(english_index, **kwargs)

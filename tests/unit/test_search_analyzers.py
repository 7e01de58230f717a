"""Unit tests for analyzers, filters and the analyzer registry."""

from __future__ import annotations

import logging

import pytest

from cranfield_search.search.analyzers import (
    AnalyzerPipeline,
    FieldAnalyzers,
    NGramAnalyzer,
    NGramTokenizer,
    PorterStemFilter,
    RegexTokenizer,
    StandardAnalyzer,
    StopFilter,
    SynonymAnalyzer,
    WhitespaceAnalyzer,
    available_analyzers,
    get_analyzer,
    resolve_analyzer_name,
)
from cranfield_search.search.synonyms import SynonymRule, build_synonym_map


def _texts(tokens) -> list[str]:
    return [token.text for token in tokens]


class TestStandardAnalyzer:
    def test_lowercases_and_strips_possessives(self):
        assert _texts(StandardAnalyzer()("Boeing's AIRCRAFT")) == ["boeing", "aircraft"]

    def test_keeps_stopwords_by_default(self):
        assert _texts(StandardAnalyzer()("the wing")) == ["the", "wing"]

    def test_empty_text_yields_no_tokens(self):
        assert StandardAnalyzer()("") == []

    def test_punctuation_only_yields_no_tokens(self):
        assert StandardAnalyzer()("???") == []

    def test_offsets_point_into_source_text(self):
        text = "flat plate"
        tokens = StandardAnalyzer()(text)
        assert [text[t.start_char : t.end_char] for t in tokens] == ["flat", "plate"]


class TestEnglishAnalyzer:
    def test_removes_stopwords_and_stems(self):
        analyzer = get_analyzer("english")
        assert _texts(analyzer("The engines' wings were tested")) == ["engine", "wing", "were", "test"]

    def test_positions_are_dense_after_stopword_removal(self):
        tokens = get_analyzer("english")("the wing of the plane")
        assert _texts(tokens) == ["wing", "plane"]
        assert [token.position for token in tokens] == [0, 1]

    @pytest.mark.parametrize(
        ("word", "expected"),
        [
            ("engines", "engine"),
            ("fluxes", "flux"),
            ("properties", "property"),
            ("loss", "loss"),
            ("wings", "wing"),
            ("wing", "wing"),
        ],
    )
    def test_stemmer_plural_handling(self, word, expected):
        assert _texts(PorterStemFilter()(RegexTokenizer()(word))) == [expected]


class TestOtherAnalyzers:
    def test_whitespace_analyzer_does_not_normalize(self):
        assert _texts(WhitespaceAnalyzer()("Wing-Tip FLOW")) == ["Wing-Tip", "FLOW"]

    def test_ngram_analyzer_emits_grams_by_offset_then_length(self):
        tokens = NGramAnalyzer()("Wing")
        assert _texts(tokens) == ["win", "wing", "ing"]
        assert [token.position for token in tokens] == [0, 1, 2]

    def test_ngram_grams_span_whitespace(self):
        grams = _texts(NGramAnalyzer()("a wing"))
        assert grams[:3] == ["a w", "a wi", "a win"]
        assert " wing" in grams
        assert len(grams) == 9

    def test_ngram_text_shorter_than_min_gram(self):
        assert NGramAnalyzer()("ab") == []

    def test_ngram_tokenizer_rejects_bad_range(self):
        with pytest.raises(ValueError):
            NGramTokenizer(4, 3)

    def test_synonyms_share_the_source_position(self):
        tokens = SynonymAnalyzer()("Wing lift")
        assert [(t.text, t.position) for t in tokens] == [
            ("wing", 0),
            ("airfoil", 0),
            ("lift", 1),
            ("aerodynamic", 1),
        ]
        assert tokens[1].attributes == {"type": "SYNONYM"}
        assert tokens[0].attributes == {}

    def test_synonym_analyzer_accepts_custom_table(self):
        table = build_synonym_map([SynonymRule("mach", "speed")])
        assert _texts(SynonymAnalyzer(table)("Mach wing")) == ["mach", "speed", "wing"]


class TestPipeline:
    def test_stop_filter_matches_case_insensitively(self):
        pipeline = AnalyzerPipeline(RegexTokenizer(), [StopFilter(["wing"])])
        assert _texts(pipeline("wing Wing lift")) == ["lift"]


class TestRegistry:
    def test_available_analyzers(self):
        assert available_analyzers() == ["english", "ngram", "standard", "synonym", "whitespace"]

    def test_get_analyzer_is_case_insensitive(self):
        assert isinstance(get_analyzer("NGRAM"), NGramAnalyzer)

    def test_get_analyzer_defaults_to_standard(self):
        assert isinstance(get_analyzer(None), StandardAnalyzer)

    def test_get_analyzer_rejects_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown analyzer"):
            get_analyzer("klingon")

    def test_resolve_analyzer_name_falls_back_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert resolve_analyzer_name("klingon") == "standard"
        assert "klingon" in caplog.text

    def test_resolve_analyzer_name_keeps_known_names(self):
        assert resolve_analyzer_name("English") == "english"
        assert resolve_analyzer_name(None) == "standard"


class TestFieldAnalyzers:
    def test_unlisted_fields_use_default(self):
        analyzers = FieldAnalyzers({"title": "ngram"}, default="english")
        assert analyzers.name_for("title") == "ngram"
        assert analyzers.name_for("content") == "english"
        assert analyzers.tokenize("content", "The wings") == ["wing"]
        assert analyzers.tokenize("title", "wing") == ["win", "wing", "ing"]

    def test_uniform_binding(self):
        analyzers = FieldAnalyzers.uniform("whitespace", ["title", "content"])
        assert analyzers.tokenize("title", "A B") == ["A", "B"]
        assert analyzers.tokenize("author", "A B") == ["A", "B"]

    def test_unknown_analyzer_fails_fast(self):
        with pytest.raises(ValueError):
            FieldAnalyzers({"title": "klingon"})

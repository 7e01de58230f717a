"""Unit tests for query trees and the free-text parser."""

from __future__ import annotations

from cranfield_search.search.analyzers import FieldAnalyzers
from cranfield_search.search.query import (
    And,
    Or,
    Query,
    TermClause,
    is_empty,
    iter_clauses,
    parse_fields,
    parse_query,
    query_terms,
    with_boost,
)


ANALYZERS = FieldAnalyzers({"title": "standard", "content": "english"}, default="english")


def test_parse_query_analyzes_with_the_field_analyzer() -> None:
    tree = parse_query("The Wings of aircraft", "content", ANALYZERS)
    assert tree == Or((TermClause("content", "wing"), TermClause("content", "aircraft")))


def test_parse_query_is_not_query_syntax() -> None:
    tree = parse_query('wing AND "lift" -drag', "title", ANALYZERS)
    assert [clause.term for clause in iter_clauses(tree)] == ["wing", "and", "lift", "drag"]


def test_repeated_terms_collapse_into_boosted_clause() -> None:
    tree = parse_query("flow flow plate flow", "title", ANALYZERS)
    assert tree.children == (TermClause("title", "flow", 3.0), TermClause("title", "plate", 1.0))


def test_parse_query_without_terms_is_empty() -> None:
    tree = parse_query("???", "content", ANALYZERS)
    assert tree == Or(())
    assert is_empty(tree)


def test_parse_fields_boosts_each_field() -> None:
    tree = parse_fields("wing design", {"title": 2.0, "content": 1.0}, ANALYZERS)
    assert [child.boost for child in tree.children] == [2.0, 1.0]
    assert query_terms(tree, "title") == {"wing", "design"}
    assert query_terms(tree) == {"wing", "design"}


def test_parse_fields_drops_fields_without_terms() -> None:
    tree = parse_fields("the", {"title": 2.0, "content": 1.0}, ANALYZERS)
    # "the" survives the standard title analyzer but is a stopword for content
    assert len(tree.children) == 1
    assert tree.children[0].children == (TermClause("title", "the"),)


def test_with_boost_and_nested_iteration() -> None:
    inner = And((TermClause("content", "wing"), TermClause("content", "lift")))
    tree = Or((with_boost(inner, 0.5), TermClause("title", "wing")))
    assert tree.children[0].boost == 0.5
    assert [clause.term for clause in iter_clauses(tree)] == ["wing", "lift", "wing"]
    assert not is_empty(tree)


def test_query_with_tree_keeps_identity() -> None:
    query = Query(id=7, raw_text="wing")
    assert is_empty(query.tree)
    updated = query.with_tree(Or((TermClause("content", "wing"),)))
    assert (updated.id, updated.raw_text) == (7, "wing")
    assert query_terms(updated.tree) == {"wing"}

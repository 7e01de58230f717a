"""Boolean query trees and the free-text query parser.

A query tree is a tagged variant: a ``TermClause`` leaf or an ``Or``/``And``
node over children. Nodes are immutable; the evaluator in ``bm25_engine`` is a
single recursive function over these three shapes.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace

from cranfield_search.search.analyzers import FieldAnalyzers


@dataclass(frozen=True)
class TermClause:
    """Match ``term`` in ``field``; its BM25 contribution is multiplied by ``boost``."""

    field: str
    term: str
    boost: float = 1.0


@dataclass(frozen=True)
class Or:
    """Matches documents matching any child; scores are summed."""

    children: tuple[QueryNode, ...] = ()
    boost: float = 1.0


@dataclass(frozen=True)
class And:
    """Matches documents matching every child; scores are summed."""

    children: tuple[QueryNode, ...] = ()
    boost: float = 1.0


QueryNode = TermClause | Or | And


@dataclass(frozen=True)
class Query:
    """A parsed query: the batch id, the text it came from and its tree."""

    id: int
    raw_text: str
    tree: QueryNode = field(default_factory=Or)

    def with_tree(self, tree: QueryNode) -> Query:
        return replace(self, tree=tree)


def with_boost(node: QueryNode, boost: float) -> QueryNode:
    """Return ``node`` with its boost replaced."""
    return replace(node, boost=boost)


def iter_clauses(node: QueryNode) -> Iterator[TermClause]:
    """Yield every leaf of a query tree, depth first."""

    if isinstance(node, TermClause):
        yield node
        return
    for child in node.children:
        yield from iter_clauses(child)


def query_terms(node: QueryNode, field_name: str | None = None) -> set[str]:
    """Return the set of terms the tree matches, optionally limited to one field."""

    return {clause.term for clause in iter_clauses(node) if field_name is None or clause.field == field_name}


def is_empty(node: QueryNode) -> bool:
    return next(iter_clauses(node), None) is None


def parse_query(text: str, field_name: str, analyzers: FieldAnalyzers, *, boost: float = 1.0) -> Or:
    """Parse free text into an OR of term clauses for one field.

    The text is run through the field's analyzer, never interpreted as query
    syntax. Repeated terms collapse into one clause whose boost counts the
    repetitions, which scores the same as repeating the clause.
    """

    counts: dict[str, int] = {}
    for term in analyzers.tokenize(field_name, text):
        counts[term] = counts.get(term, 0) + 1
    clauses = tuple(TermClause(field_name, term, float(count)) for term, count in counts.items())
    return Or(clauses, boost=boost)


def parse_fields(text: str, field_boosts: Mapping[str, float], analyzers: FieldAnalyzers) -> Or:
    """Parse ``text`` once per field and OR the per-field queries, each with its boost."""

    children = tuple(
        parse_query(text, field_name, analyzers, boost=boost)
        for field_name, boost in field_boosts.items()
    )
    return Or(tuple(child for child in children if child.children))

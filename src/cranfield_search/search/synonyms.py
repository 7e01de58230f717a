"""Domain synonym table for aeronautics retrieval.

The synonym table is process-wide and read-only. It is compiled lazily on
first use into an immutable mapping ``term -> tuple of extra terms`` that the
synonym analyzer consults at both index time and query time.

Example:
    - "airplane" also emits "aircraft"
    - "wing" also emits "airfoil"

Rules are one-directional unless declared bidirectional: ``airplane ->
aircraft`` lets a query for "aircraft" find documents that say "airplane",
because those documents were indexed with both terms.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType


SynonymMap = Mapping[str, tuple[str, ...]]


@dataclass(frozen=True)
class SynonymRule:
    """A single ``source -> target`` rewrite."""

    source: str
    target: str
    bidirectional: bool = False


DEFAULT_RULES: tuple[SynonymRule, ...] = (
    # Vehicles
    SynonymRule("airplane", "aircraft"),
    SynonymRule("aeroplane", "aircraft"),
    SynonymRule("jet", "aircraft"),
    SynonymRule("rocket", "missile"),
    # Aerodynamics
    SynonymRule("lift", "aerodynamic"),
    SynonymRule("wing", "airfoil"),
    # Propulsion
    SynonymRule("engine", "propulsion"),
)


def build_synonym_map(rules: Iterable[SynonymRule]) -> SynonymMap:
    """Compile rules into an immutable lookup table.

    Targets keep rule order and are de-duplicated per source term.
    """

    table: dict[str, list[str]] = {}

    def add(source: str, target: str) -> None:
        source, target = source.lower(), target.lower()
        if source == target:
            return
        targets = table.setdefault(source, [])
        if target not in targets:
            targets.append(target)

    for rule in rules:
        add(rule.source, rule.target)
        if rule.bidirectional:
            add(rule.target, rule.source)

    return MappingProxyType({source: tuple(targets) for source, targets in table.items()})


@lru_cache(maxsize=1)
def get_synonym_map() -> SynonymMap:
    """Return the process-wide synonym table, compiling it on first use."""

    return build_synonym_map(DEFAULT_RULES)

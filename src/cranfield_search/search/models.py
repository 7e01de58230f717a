"""Search data models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class Document:
    """A collection record: a unique id plus raw field texts."""

    id: str
    fields: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, field_name: str) -> str:
        """Return the raw text of a field, empty when the record lacks it."""
        if field_name == "id":
            return self.id
        return self.fields.get(field_name) or ""

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> Document:
        data = {key: "" if value is None else str(value) for key, value in record.items() if key != "id"}
        return cls(id=str(record["id"]), fields=data)


@dataclass(frozen=True, slots=True)
class Posting:
    """A posting records how often a term occurs in one document."""

    doc_ordinal: int
    frequency: int

    def to_list(self) -> list[int]:
        return [self.doc_ordinal, self.frequency]

    @classmethod
    def from_list(cls, data: list[int]) -> Posting:
        return cls(doc_ordinal=int(data[0]), frequency=int(data[1]))


@dataclass(frozen=True, slots=True)
class ScoredDocument:
    """A document ordinal paired with its retrieval score."""

    doc_ordinal: int
    score: float


@dataclass(frozen=True, slots=True)
class RunEntry:
    """One line of a TREC-style run."""

    query_id: int
    document_id: str
    rank: int
    score: float
    run_tag: str

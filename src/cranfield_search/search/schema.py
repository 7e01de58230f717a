"""
Schema definition for the document collection.

Defines which document fields are indexed and how, inspired by Whoosh's
schema module. Supports:
- TextField: Analyzed text fields, each bound to a named analyzer
- KeywordField: The unique document identifier, stored verbatim
- StoredField: Raw text kept with the document but never indexed

The schema travels with the index it built, so the query side always picks
the same analyzer per field as the indexing side.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cranfield_search.search.analyzers import DEFAULT_ANALYZER, FieldAnalyzers


REQUIRED_FIELDS: tuple[str, ...] = ("id", "title", "author", "content")
INDEXED_FIELDS: tuple[str, ...] = ("title", "author", "content")


class FieldType(str, Enum):
    """Types of fields supported in the schema."""

    TEXT = "text"
    KEYWORD = "keyword"
    STORED = "stored"


@dataclass(frozen=True)
class SchemaField(ABC):
    """Base class for all schema fields."""

    name: str
    stored: bool = True

    @property
    @abstractmethod
    def field_type(self) -> FieldType:
        """Return the field type."""

    def to_dict(self) -> dict[str, Any]:
        """Serialize field definition to dict."""
        return {
            "name": self.name,
            "type": self.field_type.value,
            "stored": self.stored,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SchemaField:
        """Deserialize field definition from dict."""
        field_type = FieldType(data["type"])
        if field_type == FieldType.TEXT:
            return TextField(
                name=data["name"],
                stored=data.get("stored", True),
                analyzer_name=data.get("analyzer_name", DEFAULT_ANALYZER),
            )
        if field_type == FieldType.KEYWORD:
            return KeywordField(name=data["name"], stored=data.get("stored", True))
        return StoredField(name=data["name"])


@dataclass(frozen=True)
class TextField(SchemaField):
    """
    Analyzed text field for full-text search.

    Args:
        name: Field name (e.g., "title", "content")
        stored: Keep the raw value with the document (default: True)
        analyzer_name: Registered analyzer used at index and query time
    """

    analyzer_name: str = DEFAULT_ANALYZER

    @property
    def field_type(self) -> FieldType:
        return FieldType.TEXT

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["analyzer_name"] = self.analyzer_name
        return data


@dataclass(frozen=True)
class KeywordField(SchemaField):
    """Exact-match field holding the external document id."""

    @property
    def field_type(self) -> FieldType:
        return FieldType.KEYWORD


@dataclass(frozen=True)
class StoredField(SchemaField):
    """Stored-only field (not indexed), e.g. bibliographic notes."""

    stored: bool = field(default=True, init=False)

    @property
    def field_type(self) -> FieldType:
        return FieldType.STORED


@dataclass
class Schema:
    """
    Schema definition for an index.

    Example:
        schema = Schema(
            fields=[
                KeywordField("id"),
                TextField("title", analyzer_name="ngram"),
                TextField("content", analyzer_name="english"),
            ],
            unique_field="id",
        )
    """

    fields: list[SchemaField]
    unique_field: str = "id"

    def __post_init__(self) -> None:
        """Validate schema after initialization."""
        self._field_map: dict[str, SchemaField] = {f.name: f for f in self.fields}

        if self.unique_field not in self._field_map:
            msg = f"Unique field '{self.unique_field}' not found in schema"
            raise ValueError(msg)

    def __getitem__(self, name: str) -> SchemaField:
        """Get field by name."""
        return self._field_map[name]

    def __contains__(self, name: str) -> bool:
        """Check if field exists."""
        return name in self._field_map

    def __iter__(self):
        """Iterate over fields."""
        return iter(self.fields)

    def __len__(self) -> int:
        """Return number of fields."""
        return len(self.fields)

    @property
    def text_fields(self) -> list[TextField]:
        """Return all text fields."""
        return [f for f in self.fields if isinstance(f, TextField)]

    @property
    def stored_field_names(self) -> list[str]:
        return [f.name for f in self.fields if f.stored]

    def field_analyzers(self) -> FieldAnalyzers:
        """Return the analyzer binding for every text field."""
        return FieldAnalyzers({f.name: f.analyzer_name for f in self.text_fields})

    def to_dict(self) -> dict[str, Any]:
        """Serialize schema to dict."""
        return {
            "unique_field": self.unique_field,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Schema:
        """Deserialize schema from dict."""
        fields = [SchemaField.from_dict(f) for f in data["fields"]]
        return cls(fields=fields, unique_field=data.get("unique_field", "id"))


def create_cranfield_schema(
    analyzer_name: str = "english",
    *,
    overrides: Mapping[str, str] | None = None,
) -> Schema:
    """
    Create the schema for Cranfield-style records.

    Fields:
    - id: Unique document number (keyword)
    - title, author, content: Analyzed text, all with ``analyzer_name`` unless
      ``overrides`` names a different analyzer for a field
    - biblio: Bibliographic line (stored only)
    """
    names = dict.fromkeys(INDEXED_FIELDS, analyzer_name)
    names.update(overrides or {})
    return Schema(
        unique_field="id",
        fields=[
            KeywordField("id"),
            *(TextField(name, analyzer_name=names[name]) for name in INDEXED_FIELDS),
            StoredField("biblio"),
        ],
    )

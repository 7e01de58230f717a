"""In-memory postings storage for the retrieval engine.

The module provides:

* ``IndexWriter`` - accepts documents one at a time, assigns dense ordinals
  and accumulates per-field term counts.
* ``InvertedIndex`` - the immutable result: postings sorted by ordinal, field
  lengths, corpus statistics and the stored raw fields of every document.
* ``IndexStore`` - persists an index as a single minified JSON document.

Documents are addressed by their ordinal (encounter order) everywhere inside
the engine; the external id is only looked up when results are written out.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any

import orjson

from cranfield_search.errors import IndexBuildError, IndexStoreError
from cranfield_search.search.analyzers import FieldAnalyzers
from cranfield_search.search.models import Document, Posting
from cranfield_search.search.schema import Schema
from cranfield_search.search.stats import FieldLengthStats, compute_field_length_stats


logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


@dataclass(frozen=True)
class InvertedIndex:
    """Immutable inverted index over a document collection.

    ``postings[field][term]`` is a tuple of ``Posting`` sorted by ordinal and
    ``field_lengths[field][ordinal]`` is the number of terms the field's
    analyzer produced for that document.
    """

    schema: Schema
    doc_ids: tuple[str, ...]
    stored_fields: tuple[Mapping[str, str], ...]
    postings: Mapping[str, Mapping[str, tuple[Posting, ...]]]
    field_lengths: Mapping[str, tuple[int, ...]]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def doc_count(self) -> int:
        return len(self.doc_ids)

    @cached_property
    def analyzers(self) -> FieldAnalyzers:
        """Analyzers the index was built with, for query-side reuse."""
        return self.schema.field_analyzers()

    @cached_property
    def _ordinals(self) -> Mapping[str, int]:
        return MappingProxyType({doc_id: ordinal for ordinal, doc_id in enumerate(self.doc_ids)})

    @cached_property
    def _field_stats(self) -> Mapping[str, FieldLengthStats]:
        return MappingProxyType(
            {name: compute_field_length_stats(name, lengths) for name, lengths in self.field_lengths.items()}
        )

    def field_stats(self, field_name: str) -> FieldLengthStats:
        stats = self._field_stats.get(field_name)
        if stats is None:
            return FieldLengthStats(field=field_name, total_terms=0, document_count=self.doc_count)
        return stats

    def get_postings(self, field_name: str, term: str) -> tuple[Posting, ...]:
        """Return postings for a specific term in a field (empty when unknown)."""
        return self.postings.get(field_name, {}).get(term, ())

    def document_frequency(self, field_name: str, term: str) -> int:
        return len(self.get_postings(field_name, term))

    def field_length(self, field_name: str, ordinal: int) -> int:
        lengths = self.field_lengths.get(field_name)
        return lengths[ordinal] if lengths else 0

    def vocabulary(self, field_name: str) -> list[str]:
        return list(self.postings.get(field_name, {}))

    def document_id(self, ordinal: int) -> str:
        return self.doc_ids[ordinal]

    def ordinal_of(self, doc_id: str) -> int | None:
        return self._ordinals.get(doc_id)

    def stored_text(self, ordinal: int, field_name: str) -> str:
        return self.stored_fields[ordinal].get(field_name, "")

    def to_dict(self) -> dict[str, Any]:
        """Serialize with postings flattened to ``[ordinal, tf]`` pairs."""
        return {
            "version": _FORMAT_VERSION,
            "schema": self.schema.to_dict(),
            "doc_ids": list(self.doc_ids),
            "stored": [dict(stored) for stored in self.stored_fields],
            "postings": {
                field_name: {term: [posting.to_list() for posting in entries] for term, entries in terms.items()}
                for field_name, terms in self.postings.items()
            },
            "field_lengths": {field_name: list(lengths) for field_name, lengths in self.field_lengths.items()},
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InvertedIndex:
        if data.get("version") != _FORMAT_VERSION:
            msg = f"Unsupported index format version: {data.get('version')!r}"
            raise IndexStoreError(msg)
        try:
            postings = {
                field_name: MappingProxyType(
                    {term: tuple(Posting.from_list(entry) for entry in entries) for term, entries in terms.items()}
                )
                for field_name, terms in data["postings"].items()
            }
            return cls(
                schema=Schema.from_dict(data["schema"]),
                doc_ids=tuple(str(doc_id) for doc_id in data["doc_ids"]),
                stored_fields=tuple(MappingProxyType(dict(stored)) for stored in data["stored"]),
                postings=MappingProxyType(postings),
                field_lengths=MappingProxyType(
                    {field_name: tuple(int(n) for n in lengths) for field_name, lengths in data["field_lengths"].items()}
                ),
                created_at=datetime.fromisoformat(data["created_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Malformed index payload: {exc}"
            raise IndexStoreError(msg) from exc


class IndexWriter:
    """Builds an ``InvertedIndex`` from documents in a single bulk pass."""

    def __init__(self, schema: Schema) -> None:
        self.schema = schema
        self._analyzers = schema.field_analyzers()
        self._text_fields = [f.name for f in schema.text_fields]
        self._stored_names = [name for name in schema.stored_field_names if name != schema.unique_field]
        self._counts: dict[str, dict[str, dict[int, int]]] = {
            name: defaultdict(dict) for name in self._text_fields
        }
        self._lengths: dict[str, list[int]] = {name: [] for name in self._text_fields}
        self._doc_ids: list[str] = []
        self._seen_ids: set[str] = set()
        self._stored: list[Mapping[str, str]] = []

    def __len__(self) -> int:
        return len(self._doc_ids)

    def add_document(self, document: Document) -> int:
        """Analyze and record one document, returning its ordinal."""

        if document.id in self._seen_ids:
            msg = f"Duplicate document for unique field '{self.schema.unique_field}': {document.id}"
            raise IndexBuildError(msg)
        ordinal = len(self._doc_ids)
        self._seen_ids.add(document.id)
        self._doc_ids.append(document.id)

        for field_name in self._text_fields:
            terms = self._analyzers.tokenize(field_name, document.get(field_name))
            self._lengths[field_name].append(len(terms))
            field_counts = self._counts[field_name]
            for term in terms:
                doc_counts = field_counts[term]
                doc_counts[ordinal] = doc_counts.get(ordinal, 0) + 1

        self._stored.append(MappingProxyType({name: document.get(name) for name in self._stored_names}))
        return ordinal

    def add_documents(self, documents: Iterable[Document]) -> None:
        for document in documents:
            self.add_document(document)

    def build(self) -> InvertedIndex:
        """Freeze postings (sorted by ordinal) and return the index."""

        postings: dict[str, Mapping[str, tuple[Posting, ...]]] = {}
        for field_name, terms in self._counts.items():
            postings[field_name] = MappingProxyType(
                {
                    term: tuple(Posting(ordinal, count) for ordinal, count in sorted(doc_counts.items()))
                    for term, doc_counts in terms.items()
                }
            )
        return InvertedIndex(
            schema=self.schema,
            doc_ids=tuple(self._doc_ids),
            stored_fields=tuple(self._stored),
            postings=MappingProxyType(postings),
            field_lengths=MappingProxyType({name: tuple(lengths) for name, lengths in self._lengths.items()}),
        )


class IndexStore:
    """Persist indexes as minified JSON payloads."""

    SUFFIX = ".json"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}{self.SUFFIX}"

    def save(self, index: InvertedIndex, name: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(name)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_bytes(orjson.dumps(index.to_dict()))
        tmp_path.replace(path)
        logger.info("Saved index with %d documents to %s", index.doc_count, path)
        return path

    def load(self, name: str) -> InvertedIndex | None:
        """Load an index by name, or ``None`` when it was never saved."""

        path = self.path_for(name)
        if not path.exists():
            return None
        try:
            data = orjson.loads(path.read_bytes())
        except orjson.JSONDecodeError as exc:
            msg = f"Index file {path} is not valid JSON: {exc}"
            raise IndexStoreError(msg) from exc
        if not isinstance(data, dict):
            msg = f"Index file {path} does not contain an object"
            raise IndexStoreError(msg)
        return InvertedIndex.from_dict(data)

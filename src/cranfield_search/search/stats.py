"""Statistical helpers for BM25 style scoring.

The functions here stay independent of the index layout so they can be unit
tested against the formulas directly.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import math


DEFAULT_K1 = 1.2
DEFAULT_B = 0.75


@dataclass(frozen=True)
class FieldLengthStats:
    """Aggregated term statistics for a field."""

    field: str
    total_terms: int
    document_count: int

    @property
    def average_length(self) -> float:
        if self.document_count == 0:
            return 0.0
        return self.total_terms / self.document_count


def compute_field_length_stats(field_name: str, lengths: Sequence[int]) -> FieldLengthStats:
    """Return aggregate stats for one field given per-document lengths."""

    return FieldLengthStats(
        field=field_name,
        total_terms=sum(max(length, 0) for length in lengths),
        document_count=len(lengths),
    )


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return the BM25 inverse document frequency.

    ``ln((N - df + 0.5) / (df + 0.5) + 1)``. Terms that occur nowhere get 0.
    """

    if total_docs <= 0 or doc_freq <= 0:
        return 0.0
    return math.log((total_docs - doc_freq + 0.5) / (doc_freq + 0.5) + 1.0)


def bm25(tf: int, doc_length: int, avg_doc_length: float, *, k1: float = DEFAULT_K1, b: float = DEFAULT_B) -> float:
    """Compute the BM25 term weight without IDF.

    ``tf * (k1 + 1) / (tf + k1 * (1 - b + b * dl / avgdl))``
    """

    if tf <= 0:
        return 0.0
    length_ratio = doc_length / avg_doc_length if avg_doc_length > 0 else 0.0
    denominator = tf + k1 * (1 - b + b * length_ratio)
    return (tf * (k1 + 1)) / denominator


def classic_idf(doc_freq: int, total_docs: int) -> float:
    """Return the smoothed TF-IDF idf ``ln((N + 1) / (df + 1)) + 1``."""

    return math.log((total_docs + 1.0) / (doc_freq + 1.0)) + 1.0

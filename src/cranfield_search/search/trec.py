"""TREC run format serialization.

Each line is ``<query_id> Q0 <document_id> <rank> <score> <run_tag>``, ranks
are 1-based and contiguous within a query.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TextIO

from cranfield_search.search.models import RunEntry, ScoredDocument
from cranfield_search.search.storage import InvertedIndex


def to_run_entries(
    query_id: int,
    results: Sequence[ScoredDocument],
    index: InvertedIndex,
    run_tag: str,
) -> list[RunEntry]:
    """Attach external ids and ranks to a ranked list, keeping its order."""

    return [
        RunEntry(
            query_id=query_id,
            document_id=index.document_id(hit.doc_ordinal),
            rank=rank,
            score=hit.score,
            run_tag=run_tag,
        )
        for rank, hit in enumerate(results, start=1)
    ]


def format_run_line(entry: RunEntry) -> str:
    return f"{entry.query_id} Q0 {entry.document_id} {entry.rank} {entry.score} {entry.run_tag}"


def write_run_entries(entries: Iterable[RunEntry], stream: TextIO) -> int:
    """Write entries to an open text stream; returns the number of lines written."""

    count = 0
    for entry in entries:
        stream.write(format_run_line(entry))
        stream.write("\n")
        count += 1
    return count


def write_run(entries: Iterable[RunEntry], path: Path) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        return write_run_entries(entries, stream)

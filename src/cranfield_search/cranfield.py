"""Readers for the Cranfield collection, query and relevance files.

Records in ``cran.all.1400`` and ``cran.qry`` start with an ``.I <number>``
line followed by sections introduced by ``.T`` (title), ``.A`` (author),
``.B`` (bibliography) and ``.W`` (text).
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
from pathlib import Path
import re

from cranfield_search.search.models import Document


logger = logging.getLogger(__name__)

_RECORD_SPLIT = re.compile(r"(?:^|\n)\.I\s+")
_SECTION_MARKER = re.compile(r"^\.([TABW])\s*$|^\.([TABW])\s+(.*)$")
_SECTION_FIELDS = {"T": "title", "A": "author", "B": "biblio", "W": "content"}
_WHITESPACE = re.compile(r"\s+")


def _read_text(path: Path) -> str:
    if not path.is_file():
        msg = f"Missing {path.name} in {path.parent.resolve()}"
        raise FileNotFoundError(msg)
    return path.read_text(encoding="utf-8", errors="replace").replace("\r", "")


def _split_records(text: str) -> Iterable[tuple[str, list[str]]]:
    for block in _RECORD_SPLIT.split(text):
        lines = block.strip().split("\n")
        if not lines or not lines[0].strip():
            continue
        yield lines[0].strip(), lines[1:]


def _parse_sections(lines: list[str]) -> dict[str, str]:
    sections: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in lines:
        match = _SECTION_MARKER.match(line.strip())
        if match:
            marker = match.group(1) or match.group(2)
            current = sections.setdefault(_SECTION_FIELDS[marker], [])
            if match.group(3):
                current.append(match.group(3))
            continue
        if current is not None:
            current.append(line)
    return {name: "\n".join(body).strip() for name, body in sections.items()}


def parse_documents(path: str | Path) -> list[Document]:
    """Parse the collection file into documents, in file order.

    Sections a record lacks come back as empty strings.
    """

    documents = []
    for doc_id, lines in _split_records(_read_text(Path(path))):
        sections = _parse_sections(lines)
        documents.append(
            Document(
                id=doc_id.split()[0],
                fields={name: sections.get(name, "") for name in _SECTION_FIELDS.values()},
            )
        )
    logger.info("Parsed %d documents from %s", len(documents), path)
    return documents


def parse_queries(path: str | Path) -> dict[int, str]:
    """Parse the query file into ``{query_id: text}`` in file order.

    Query ids are assigned sequentially from 1: the relevance judgments number
    queries by position, not by their ``.I`` labels. Text lines are joined with
    single spaces.
    """

    queries: dict[int, str] = {}
    for position, (_label, lines) in enumerate(_split_records(_read_text(Path(path))), start=1):
        text = _parse_sections(lines).get("content", "")
        queries[position] = _WHITESPACE.sub(" ", text).strip()
    logger.info("Parsed %d queries from %s", len(queries), path)
    return queries


def load_qrels(path: str | Path) -> list[str]:
    """Return relevance judgments normalized to ``qid 0 docno rel`` lines."""

    normalized = []
    for line in _read_text(Path(path)).split("\n"):
        parts = line.split()
        if len(parts) == 3:
            normalized.append(f"{parts[0]} 0 {parts[1]} {parts[2]}")
        elif len(parts) >= 4:
            normalized.append(f"{parts[0]} 0 {parts[2]} {parts[3]}")
        elif parts:
            logger.warning("Skipping malformed qrels line: %r", line)
    return normalized


def write_qrels(lines: Iterable[str], path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return target

"""Experiment pipeline: index the collection, run a strategy, write and evaluate runs.

Each strategy pairs an index analyzer configuration with a way of turning query
text into ranked documents:

* ``baseline``: content parse with the configured analyzer
* ``bm25``: content parse with tuned ``k1``/``b``
* ``ngram``: title n-grams plus content terms, field boosted
* ``synonym``: content parse over a synonym-expanded index
* ``fieldboost``: title and content, field boosted
* ``rocchio``: pseudo-relevance feedback expansion, then re-search
* ``rerank``: Rocchio base retrieval reranked by title match

Indexes are built once per analyzer configuration and shared read-only by
every query, including queries evaluated on worker threads.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from pathlib import Path
import time

from cranfield_search.config import Settings
from cranfield_search.cranfield import load_qrels, write_qrels
from cranfield_search.errors import SearchError
from cranfield_search.evaluation import EvaluationReport, run_trec_eval
from cranfield_search.observability import bound_context
from cranfield_search.search.analyzers import resolve_analyzer_name
from cranfield_search.search.bm25_engine import BM25SearchEngine
from cranfield_search.search.feedback import RocchioExpander
from cranfield_search.search.indexer import build_index
from cranfield_search.search.models import Document, RunEntry, ScoredDocument
from cranfield_search.search.query import Query
from cranfield_search.search.rerank import rerank
from cranfield_search.search.storage import InvertedIndex
from cranfield_search.search.trec import to_run_entries, write_run


logger = logging.getLogger(__name__)

QRELS_FILENAME = "qrels.trec"

Retriever = Callable[[BM25SearchEngine, Query], list[ScoredDocument]]


@dataclass(frozen=True)
class IndexConfig:
    """Analyzer binding an index is built with; the index cache key."""

    default_analyzer: str
    overrides: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class ExperimentResult:
    strategy: str
    run_tag: str
    run_path: Path
    queries: int
    entries: int
    report: EvaluationReport | None = None


@dataclass(frozen=True)
class SweepResult:
    k1: float
    b: float
    run_path: Path
    report: EvaluationReport | None = None


class ExperimentPipeline:
    """Runs retrieval strategies over one parsed collection."""

    def __init__(self, documents: Sequence[Document], settings: Settings | None = None) -> None:
        self.documents = list(documents)
        self.settings = settings or Settings()
        self._indexes: dict[IndexConfig, InvertedIndex] = {}

    # ------------------------------------------------------------------
    # Indexes and engines
    # ------------------------------------------------------------------
    def index_config(self, strategy: str) -> IndexConfig:
        if strategy == "baseline":
            return IndexConfig(resolve_analyzer_name(self.settings.analyzer))
        if strategy == "ngram":
            return IndexConfig("standard", (("title", "ngram"),))
        if strategy == "synonym":
            return IndexConfig("synonym")
        if strategy in ("bm25", "fieldboost", "rocchio", "rerank"):
            return IndexConfig("english")
        msg = f"Unknown strategy '{strategy}'"
        raise ValueError(msg)

    def index_for(self, config: IndexConfig) -> InvertedIndex:
        """Return the cached index for ``config``, building it on first use."""

        index = self._indexes.get(config)
        if index is None:
            logger.info("Building index (default=%s, overrides=%s)", config.default_analyzer, dict(config.overrides))
            index = build_index(
                self.documents,
                dict(config.overrides),
                default_analyzer=config.default_analyzer,
            )
            self._indexes[config] = index
        return index

    def engine_for(self, strategy: str, *, k1: float | None = None, b: float | None = None) -> BM25SearchEngine:
        return BM25SearchEngine(
            self.index_for(self.index_config(strategy)),
            k1=self.settings.k1 if k1 is None else k1,
            b=self.settings.b if b is None else b,
            top_k=self.settings.top_k,
        )

    def run_tag_for(self, strategy: str, *, k1: float | None = None, b: float | None = None) -> str:
        settings = self.settings
        if settings.run_tag:
            return settings.run_tag
        if strategy == "baseline":
            return f"run_{settings.analyzer}"
        if strategy == "bm25":
            return f"run_bm25_{settings.k1 if k1 is None else k1}_{settings.b if b is None else b}"
        if strategy == "fieldboost":
            return f"run_fieldboost_{settings.title_boost}_{settings.body_boost}"
        if strategy == "rerank":
            return "run_rerank_rocchio"
        return f"run_{strategy}"

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    def parse(self, strategy: str, engine: BM25SearchEngine, query_id: int, text: str) -> Query:
        if strategy in ("ngram", "fieldboost"):
            tree = engine.parse_fields(text, self.settings.field_boosts())
        else:
            tree = engine.parse(text, "content")
        return Query(id=query_id, raw_text=text, tree=tree)

    def retriever_for(self, strategy: str) -> Retriever:
        settings = self.settings
        if strategy not in ("rocchio", "rerank"):
            return lambda engine, query: engine.search(query)

        def expand(engine: BM25SearchEngine, query: Query) -> Query:
            expander = RocchioExpander(
                engine.index,
                alpha=settings.alpha,
                beta=settings.beta,
                feedback_docs=settings.feedback_docs,
                max_expansion_terms=settings.max_expansion_terms,
            )
            return expander.expand(query, lambda q: engine.search(q, limit=settings.feedback_docs))

        if strategy == "rocchio":
            return lambda engine, query: engine.search(expand(engine, query))

        def expand_and_rerank(engine: BM25SearchEngine, query: Query) -> list[ScoredDocument]:
            base = engine.search(expand(engine, query), limit=settings.top_n)
            if not base:
                logger.debug("Query %s: expanded query found nothing, retrying unexpanded", query.id)
                base = engine.search(query, limit=settings.top_n)
            return rerank(base, query.raw_text, engine, settings.rerank_boost)

        return expand_and_rerank

    def search_queries(
        self,
        strategy: str,
        queries: Mapping[int, str],
        *,
        engine: BM25SearchEngine | None = None,
        run_tag: str | None = None,
    ) -> list[RunEntry]:
        """Evaluate every query and return run entries in query input order.

        A ``SearchError`` raised for one query is logged and that query yields
        no entries; blank queries are skipped.
        """

        engine = engine or self.engine_for(strategy)
        run_tag = run_tag or self.run_tag_for(strategy)
        retrieve = self.retriever_for(strategy)

        def evaluate(item: tuple[int, str]) -> list[RunEntry]:
            query_id, text = item
            with bound_context(run_tag=run_tag, query_id=query_id):
                if not text or not text.strip():
                    logger.debug("Skipping blank query")
                    return []
                try:
                    query = self.parse(strategy, engine, query_id, text)
                    results = retrieve(engine, query)
                except SearchError as exc:
                    logger.error("Query failed: %s", exc)
                    return []
                logger.debug("Query returned %d documents", len(results))
                return to_run_entries(query_id, results, engine.index, run_tag)

        items = list(queries.items())
        started = time.perf_counter()
        if self.settings.workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.workers) as executor:
                per_query = list(executor.map(evaluate, items))
        else:
            per_query = [evaluate(item) for item in items]

        entries = [entry for batch in per_query for entry in batch]
        logger.info(
            "Strategy %s: %d queries, %d run lines in %.2fs",
            strategy,
            len(items),
            len(entries),
            time.perf_counter() - started,
        )
        return entries

    # ------------------------------------------------------------------
    # Experiments
    # ------------------------------------------------------------------
    def run(self, queries: Mapping[int, str], strategy: str | None = None) -> ExperimentResult:
        """Run one strategy, write ``<run_tag>.txt`` and evaluate it when possible."""

        strategy = strategy or self.settings.strategy
        run_tag = self.run_tag_for(strategy)
        entries = self.search_queries(strategy, queries, run_tag=run_tag)
        run_path = self.settings.output_dir / f"{run_tag}.txt"
        write_run(entries, run_path)
        logger.info("Wrote %s", run_path)
        return ExperimentResult(
            strategy=strategy,
            run_tag=run_tag,
            run_path=run_path,
            queries=len(queries),
            entries=len(entries),
            report=self.evaluate(run_path),
        )

    def sweep(self, queries: Mapping[int, str]) -> list[SweepResult]:
        """Run the ``bm25`` strategy over the configured ``k1`` x ``b`` grid."""

        results = []
        for k1 in self.settings.get_sweep_k1():
            for b in self.settings.get_sweep_b():
                engine = self.engine_for("bm25", k1=k1, b=b)
                with bound_context(k1=k1, b=b):
                    entries = self.search_queries(
                        "bm25",
                        queries,
                        engine=engine,
                        run_tag=self.run_tag_for("bm25", k1=k1, b=b),
                    )
                run_path = self.settings.output_dir / f"bm25_{k1}_{b}.txt"
                write_run(entries, run_path)
                results.append(SweepResult(k1=k1, b=b, run_path=run_path, report=self.evaluate(run_path)))
        return results

    def evaluate(self, run_path: Path) -> EvaluationReport | None:
        """Score ``run_path`` with trec_eval; ``None`` when no binary is configured."""

        settings = self.settings
        if not settings.trec_eval_bin:
            return None
        qrels_path = settings.output_dir / QRELS_FILENAME
        if not qrels_path.exists():
            write_qrels(load_qrels(settings.qrels_path), qrels_path)
        return run_trec_eval(settings.trec_eval_bin, qrels_path, run_path)

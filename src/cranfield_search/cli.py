"""Command-line entry point for Cranfield retrieval experiments.

Subcommands:

* ``index``: parse the collection, build an index and persist it
* ``search``: run one retrieval strategy and write a TREC run file
* ``sweep``: run BM25 over a ``k1`` x ``b`` grid
* ``evaluate``: score an existing run file with ``trec_eval``

Settings come from ``CRAN_*`` environment variables (and ``.env``); flags
given on the command line take precedence.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import json
import logging
from pathlib import Path
import sys

from cranfield_search.config import STRATEGIES, Settings
from cranfield_search.cranfield import load_qrels, parse_documents, parse_queries, write_qrels
from cranfield_search.errors import SearchError
from cranfield_search.evaluation import EvaluationReport, run_trec_eval
from cranfield_search.observability import configure_logging
from cranfield_search.pipeline import ExperimentPipeline
from cranfield_search.search.indexer import build_index
from cranfield_search.search.storage import IndexStore


logger = logging.getLogger(__name__)

# Flag destination -> Settings field, for flags shared by several subcommands
_SETTINGS_FLAGS = (
    "k1",
    "b",
    "top_k",
    "title_boost",
    "body_boost",
    "alpha",
    "beta",
    "feedback_docs",
    "max_expansion_terms",
    "rerank_boost",
    "top_n",
    "analyzer",
    "strategy",
    "run_tag",
    "sweep_k1",
    "sweep_b",
    "collection_path",
    "queries_path",
    "qrels_path",
    "output_dir",
    "trec_eval_bin",
    "workers",
    "log_level",
)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--collection", dest="collection_path", type=Path, help="Path to cran.all.1400")
    parser.add_argument("--output-dir", type=Path, help="Directory for run, qrels and index files")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--log-json", action="store_true", default=None, help="Emit JSON log lines")


def _add_retrieval_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--queries", dest="queries_path", type=Path, help="Path to cran.qry")
    parser.add_argument("--qrels", dest="qrels_path", type=Path, help="Path to cranqrel")
    parser.add_argument("--trec-eval", dest="trec_eval_bin", help="trec_eval executable; evaluation is skipped if unset")
    parser.add_argument("--k1", type=float, help="BM25 k1")
    parser.add_argument("--b", type=float, help="BM25 b")
    parser.add_argument("--top-k", type=int, help="Results per query")
    parser.add_argument("--workers", type=int, help="Threads used to evaluate queries")
    parser.add_argument("--run-tag", help="Override the run tag")


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cranfield-search",
        description="BM25 retrieval experiments over the Cranfield collection",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser("index", help="Build and persist an index")
    _add_common_arguments(index_parser)
    index_parser.add_argument("--analyzer", help="Analyzer for all indexed fields (default: english)")
    index_parser.add_argument(
        "--field-analyzer",
        action="append",
        default=[],
        metavar="FIELD=ANALYZER",
        help="Per-field analyzer override, repeatable",
    )
    index_parser.add_argument("--name", default="cranfield", help="Index name inside --output-dir")

    search_parser = subparsers.add_parser("search", help="Run a retrieval strategy")
    _add_common_arguments(search_parser)
    _add_retrieval_arguments(search_parser)
    search_parser.add_argument("--strategy", choices=STRATEGIES, help="Retrieval strategy")
    search_parser.add_argument("--analyzer", help="Analyzer for the baseline strategy")
    search_parser.add_argument("--title-boost", type=float, help="Title sub-query weight")
    search_parser.add_argument("--body-boost", type=float, help="Content sub-query weight")
    search_parser.add_argument("--alpha", type=float, help="Rocchio original query weight")
    search_parser.add_argument("--beta", type=float, help="Rocchio expansion weight")
    search_parser.add_argument("--feedback-docs", type=int, help="Rocchio feedback pool size")
    search_parser.add_argument("--max-expansion-terms", type=int, help="Rocchio expansion terms")
    search_parser.add_argument("--rerank-boost", type=float, help="Title rerank weight")
    search_parser.add_argument("--top-n", type=int, help="Base results reranked per query")

    sweep_parser = subparsers.add_parser("sweep", help="Run BM25 over a k1 x b grid")
    _add_common_arguments(sweep_parser)
    _add_retrieval_arguments(sweep_parser)
    sweep_parser.add_argument("--sweep-k1", help="Comma-separated k1 values")
    sweep_parser.add_argument("--sweep-b", help="Comma-separated b values")

    evaluate_parser = subparsers.add_parser("evaluate", help="Score a run file with trec_eval")
    evaluate_parser.add_argument("run", type=Path, help="TREC run file")
    evaluate_parser.add_argument("--qrels", dest="qrels_path", type=Path, help="Path to cranqrel")
    evaluate_parser.add_argument("--trec-eval", dest="trec_eval_bin", help="trec_eval executable")
    evaluate_parser.add_argument("--output-dir", type=Path, help="Directory for the normalized qrels")
    evaluate_parser.add_argument(
        "--measure",
        action="append",
        dest="measures",
        metavar="NAME",
        help="trec_eval measure, repeatable (default: all summary measures)",
    )
    evaluate_parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    evaluate_parser.add_argument("--log-json", action="store_true", default=None, help="Emit JSON log lines")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Merge explicit flags over environment settings; validation errors propagate."""

    overrides = {name: getattr(args, name) for name in _SETTINGS_FLAGS if getattr(args, name, None) is not None}
    if getattr(args, "log_json", None):
        overrides["log_json"] = True
    return Settings(**overrides)


def _parse_field_analyzers(values: Sequence[str]) -> dict[str, str]:
    mapping = {}
    for value in values:
        field_name, sep, analyzer = value.partition("=")
        if not sep or not field_name or not analyzer:
            raise ValueError(f"--field-analyzer expects FIELD=ANALYZER, got {value!r}")
        mapping[field_name.strip()] = analyzer.strip()
    return mapping


def _emit(payload: dict[str, object]) -> None:
    sys.stdout.write(json.dumps(payload, sort_keys=True, default=str) + "\n")


def _report_payload(report: EvaluationReport | None) -> dict[str, float] | None:
    return dict(report.metrics) if report is not None else None


def _cmd_index(args: argparse.Namespace, settings: Settings) -> int:
    documents = parse_documents(settings.collection_path)
    index = build_index(
        documents,
        _parse_field_analyzers(args.field_analyzer),
        default_analyzer=args.analyzer or settings.analyzer,
    )
    path = IndexStore(settings.output_dir).save(index, args.name)
    _emit({"documents": index.doc_count, "index": str(path)})
    return 0


def _cmd_search(args: argparse.Namespace, settings: Settings) -> int:
    pipeline = ExperimentPipeline(parse_documents(settings.collection_path), settings)
    result = pipeline.run(parse_queries(settings.queries_path))
    _emit(
        {
            "strategy": result.strategy,
            "run_tag": result.run_tag,
            "run": str(result.run_path),
            "queries": result.queries,
            "entries": result.entries,
            "metrics": _report_payload(result.report),
        }
    )
    return 0


def _cmd_sweep(args: argparse.Namespace, settings: Settings) -> int:
    pipeline = ExperimentPipeline(parse_documents(settings.collection_path), settings)
    for result in pipeline.sweep(parse_queries(settings.queries_path)):
        _emit(
            {
                "k1": result.k1,
                "b": result.b,
                "run": str(result.run_path),
                "metrics": _report_payload(result.report),
            }
        )
    return 0


def _cmd_evaluate(args: argparse.Namespace, settings: Settings) -> int:
    if not settings.trec_eval_bin:
        logger.error("No trec_eval executable configured (use --trec-eval or CRAN_TREC_EVAL_BIN)")
        return 1
    qrels_path = write_qrels(load_qrels(settings.qrels_path), settings.output_dir / "qrels.trec")
    report = run_trec_eval(settings.trec_eval_bin, qrels_path, args.run, args.measures)
    _emit({"run": str(args.run), "metrics": _report_payload(report)})
    return 0


_COMMANDS = {
    "index": _cmd_index,
    "search": _cmd_search,
    "sweep": _cmd_sweep,
    "evaluate": _cmd_evaluate,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args)
    except ValueError as exc:
        configure_logging()
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(settings.log_level, settings.log_json)

    try:
        return _COMMANDS[args.command](args, settings)
    except FileNotFoundError as exc:
        logger.error("Input not found: %s", exc)
        return 1
    except SearchError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid argument: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

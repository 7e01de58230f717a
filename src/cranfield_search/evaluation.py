"""Bridge to the external ``trec_eval`` tool."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from pathlib import Path
import subprocess

from pydantic import BaseModel, Field

from cranfield_search.errors import EvaluationError


logger = logging.getLogger(__name__)


class EvaluationReport(BaseModel):
    """Summary measures ``trec_eval`` reported for a whole run."""

    model_config = {"frozen": True, "extra": "forbid"}

    run_id: str = Field(default="", description="runid reported by trec_eval")
    num_queries: int = Field(default=0, ge=0, description="Queries evaluated")
    metrics: dict[str, float] = Field(default_factory=dict, description="Measure name -> value")

    def __getitem__(self, measure: str) -> float:
        return self.metrics[measure]

    def get(self, measure: str, default: float | None = None) -> float | None:
        return self.metrics.get(measure, default)


def parse_trec_eval_output(output: str) -> EvaluationReport:
    """Parse ``<measure> all <value>`` summary lines.

    Per-query lines (``-q``) are ignored. Non-numeric values other than
    ``runid`` are skipped.
    """

    run_id = ""
    num_queries = 0
    metrics: dict[str, float] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) != 3 or parts[1] != "all":
            continue
        measure, _scope, value = parts
        if measure == "runid":
            run_id = value
            continue
        try:
            number = float(value)
        except ValueError:
            logger.debug("Skipping non-numeric trec_eval measure %s=%s", measure, value)
            continue
        if measure == "num_q":
            num_queries = int(number)
        metrics[measure] = number
    return EvaluationReport(run_id=run_id, num_queries=num_queries, metrics=metrics)


def run_trec_eval(
    binary: str | Path,
    qrels: str | Path,
    run: str | Path,
    measures: Sequence[str] | None = None,
) -> EvaluationReport:
    """Evaluate ``run`` against ``qrels`` and return the summary measures.

    Raises:
        EvaluationError: The binary cannot be executed or exits non-zero.
    """

    cmd = [str(binary)]
    for measure in measures or ():
        cmd.extend(["-m", measure])
    cmd.extend([str(qrels), str(run)])

    logger.debug("Running %s", " ".join(cmd))
    try:
        completed = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except (FileNotFoundError, PermissionError) as err:
        raise EvaluationError(f"trec_eval executable not usable: {binary}") from err

    if completed.returncode != 0:
        detail = completed.stderr.strip() or completed.stdout.strip() or "unknown error"
        raise EvaluationError(f"trec_eval failed with exit code {completed.returncode}: {detail}")

    report = parse_trec_eval_output(completed.stdout)
    logger.info(
        "Evaluated %s: map=%s P_5=%s",
        Path(run).name,
        report.get("map"),
        report.get("P_5"),
    )
    return report

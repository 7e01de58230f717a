"""Centralized configuration for cranfield-search using Pydantic Settings."""

from pathlib import Path
from typing import Literal, get_args

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


Strategy = Literal["baseline", "bm25", "ngram", "synonym", "fieldboost", "rocchio", "rerank"]

STRATEGIES: tuple[str, ...] = get_args(Strategy)


class Settings(BaseSettings):
    """Strictly typed experiment configuration loaded from ``CRAN_*`` environment variables.

    Every field is validated at startup. Command-line flags are passed as
    init keyword arguments, which take precedence over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="CRAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Similarity
    k1: float = Field(default=1.2, gt=0.0, description="BM25 term-frequency saturation")
    b: float = Field(default=0.75, ge=0.0, le=1.0, description="BM25 length normalization")
    top_k: int = Field(default=1000, gt=0, description="Maximum results returned per query")

    # Field boosting
    title_boost: float = Field(default=2.0, ge=0.0, description="Weight of the title sub-query")
    body_boost: float = Field(default=1.0, ge=0.0, description="Weight of the content sub-query")

    # Rocchio pseudo-relevance feedback
    alpha: float = Field(default=1.0, ge=0.0, description="Weight of the original query")
    beta: float = Field(default=0.75, ge=0.0, description="Upper bound of expansion term boosts")
    feedback_docs: int = Field(default=10, gt=0, description="Top documents treated as relevant")
    max_expansion_terms: int = Field(default=15, ge=0, description="Expansion terms added per query")

    # Reranking
    rerank_boost: float = Field(default=0.3, ge=0.0, description="Weight of the title match score when reranking")
    top_n: int = Field(default=100, gt=0, description="Base results reranked per query")

    # Experiment selection
    analyzer: str = Field(
        default="english",
        description="Analyzer for the baseline strategy; unknown names fall back to 'standard'",
    )
    strategy: Strategy = Field(default="baseline", description="Retrieval strategy to run")
    run_tag: str | None = Field(default=None, description="Override for the run tag written to the run file")
    sweep_k1: str = Field(default="0.8,1.0,1.2,1.5,2.0", description="Comma-separated k1 grid for sweeps")
    sweep_b: str = Field(default="0.3,0.5,0.75,0.9", description="Comma-separated b grid for sweeps")

    # Paths
    collection_path: Path = Field(default=Path("cran/cran.all.1400"), description="Cranfield collection file")
    queries_path: Path = Field(default=Path("cran/cran.qry"), description="Cranfield query file")
    qrels_path: Path = Field(default=Path("cran/cranqrel"), description="Cranfield relevance judgments")
    output_dir: Path = Field(default=Path("results"), description="Directory for run and qrels files")
    trec_eval_bin: str | None = Field(default=None, description="trec_eval executable; evaluation is skipped when unset")

    # Execution
    workers: int = Field(default=1, ge=1, description="Threads used to evaluate queries")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    @model_validator(mode="after")
    def _check_sweep_grids(self) -> "Settings":
        # Parse eagerly so a malformed grid fails at startup, not mid-sweep
        for name, grid in (("sweep_k1", self.get_sweep_k1()), ("sweep_b", self.get_sweep_b())):
            if not grid:
                raise ValueError(f"{name} must list at least one value")
        if any(value <= 0 for value in self.get_sweep_k1()):
            raise ValueError("sweep_k1 values must be positive")
        if any(not 0.0 <= value <= 1.0 for value in self.get_sweep_b()):
            raise ValueError("sweep_b values must be within [0, 1]")
        return self

    def get_sweep_k1(self) -> list[float]:
        """Get the k1 grid (comma-separated)."""
        return _parse_grid(self.sweep_k1)

    def get_sweep_b(self) -> list[float]:
        """Get the b grid (comma-separated)."""
        return _parse_grid(self.sweep_b)

    def field_boosts(self) -> dict[str, float]:
        return {"title": self.title_boost, "content": self.body_boost}


def _parse_grid(raw: str) -> list[float]:
    return [float(value.strip()) for value in raw.split(",") if value.strip()]

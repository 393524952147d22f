"""Runtime configuration for the issue assembly pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

LLM_BACKENDS = ("http", "cli")
MAX_FACT_CHECK_SCORE = 30


@dataclass(slots=True)
class PipelineSettings:
    """Step retry policy and candidate assignment settings."""

    max_retries: int = 2
    retry_delay_seconds: float = 2.0
    candidates_per_slot: int = 4


@dataclass(slots=True)
class DedupSettings:
    """Four-stage deduplication settings."""

    strictness_threshold: float = 0.80
    historical_lookback_days: int = 3
    semantic_threshold: float = 0.92
    model_name: str = "hashing-trigram"


@dataclass(slots=True)
class ScoringSettings:
    """Candidate scoring settings."""

    lookback_hours: int = 72


@dataclass(slots=True)
class GenerationSettings:
    """Content generation batching settings."""

    title_batch_size: int = 3
    body_batch_size: int = 3
    body_batches: int = 2
    batch_delay_seconds: float = 0.0
    min_fact_check_score: int = 12


@dataclass(slots=True)
class LlmSettings:
    """LLM collaborator settings."""

    backend: str = "http"
    base_url: str = "https://api.openai.com/v1"
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    command_template: str = ""
    timeout_seconds: float = 120.0
    temperature: float = 0.3


@dataclass(slots=True)
class IngestSettings:
    """Candidate source used by the ingest step."""

    candidates_file: Path | None = None
    rss_feeds: tuple[str, ...] = ()
    default_module_id: str | None = None


@dataclass(slots=True)
class AllocationSettings:
    """Module slot allocation settings."""

    random_seed: int | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".news_issue.db")
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    dedup: DedupSettings = field(default_factory=DedupSettings)
    scoring: ScoringSettings = field(default_factory=ScoringSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    llm: LlmSettings = field(default_factory=LlmSettings)
    allocation: AllocationSettings = field(default_factory=AllocationSettings)
    ingest: IngestSettings = field(default_factory=IngestSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        seed_raw = os.getenv("NEWS_ISSUE_ALLOCATION_RANDOM_SEED", "").strip()
        candidates_file = os.getenv("NEWS_ISSUE_CANDIDATES_FILE", "").strip()
        feeds_raw = os.getenv("NEWS_ISSUE_RSS_FEEDS", "")
        return cls(
            db_path=db_path or Path(os.getenv("NEWS_ISSUE_DB_PATH", ".news_issue.db")),
            pipeline=PipelineSettings(
                max_retries=int(os.getenv("NEWS_ISSUE_MAX_RETRIES", "2")),
                retry_delay_seconds=float(os.getenv("NEWS_ISSUE_RETRY_DELAY_SECONDS", "2.0")),
                candidates_per_slot=int(os.getenv("NEWS_ISSUE_CANDIDATES_PER_SLOT", "4")),
            ),
            dedup=DedupSettings(
                strictness_threshold=float(
                    os.getenv("NEWS_ISSUE_DEDUP_STRICTNESS_THRESHOLD", "0.80"),
                ),
                historical_lookback_days=int(
                    os.getenv("NEWS_ISSUE_DEDUP_HISTORICAL_LOOKBACK_DAYS", "3"),
                ),
                semantic_threshold=float(os.getenv("NEWS_ISSUE_DEDUP_SEMANTIC_THRESHOLD", "0.92")),
                model_name=os.getenv("NEWS_ISSUE_DEDUP_MODEL_NAME", "hashing-trigram"),
            ),
            scoring=ScoringSettings(
                lookback_hours=int(os.getenv("NEWS_ISSUE_SCORING_LOOKBACK_HOURS", "72")),
            ),
            generation=GenerationSettings(
                title_batch_size=int(os.getenv("NEWS_ISSUE_TITLE_BATCH_SIZE", "3")),
                body_batch_size=int(os.getenv("NEWS_ISSUE_BODY_BATCH_SIZE", "3")),
                body_batches=int(os.getenv("NEWS_ISSUE_BODY_BATCHES", "2")),
                batch_delay_seconds=float(os.getenv("NEWS_ISSUE_BATCH_DELAY_SECONDS", "0")),
                min_fact_check_score=int(os.getenv("NEWS_ISSUE_MIN_FACT_CHECK_SCORE", "12")),
            ),
            llm=LlmSettings(
                backend=os.getenv("NEWS_ISSUE_LLM_BACKEND", "http").strip().lower(),
                base_url=os.getenv("NEWS_ISSUE_LLM_BASE_URL", "https://api.openai.com/v1"),
                api_key=os.getenv("NEWS_ISSUE_LLM_API_KEY") or None,
                model=os.getenv("NEWS_ISSUE_LLM_MODEL", "gpt-4o-mini"),
                command_template=os.getenv("NEWS_ISSUE_LLM_COMMAND_TEMPLATE", ""),
                timeout_seconds=float(os.getenv("NEWS_ISSUE_LLM_TIMEOUT_SECONDS", "120")),
                temperature=float(os.getenv("NEWS_ISSUE_LLM_TEMPERATURE", "0.3")),
            ),
            allocation=AllocationSettings(
                random_seed=int(seed_raw) if seed_raw else None,
            ),
            ingest=IngestSettings(
                candidates_file=Path(candidates_file) if candidates_file else None,
                rss_feeds=tuple(url.strip() for url in feeds_raw.split(",") if url.strip()),
                default_module_id=os.getenv("NEWS_ISSUE_DEFAULT_MODULE") or None,
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if self.pipeline.max_retries < 0:
            raise ValueError("NEWS_ISSUE_MAX_RETRIES must be >= 0.")
        if self.pipeline.retry_delay_seconds < 0:
            raise ValueError("NEWS_ISSUE_RETRY_DELAY_SECONDS must be >= 0.")
        if self.pipeline.candidates_per_slot <= 0:
            raise ValueError("NEWS_ISSUE_CANDIDATES_PER_SLOT must be > 0.")
        if not 0.0 <= self.dedup.strictness_threshold <= 1.0:
            raise ValueError("NEWS_ISSUE_DEDUP_STRICTNESS_THRESHOLD must be within [0, 1].")
        if not 0.0 <= self.dedup.semantic_threshold <= 1.0:
            raise ValueError("NEWS_ISSUE_DEDUP_SEMANTIC_THRESHOLD must be within [0, 1].")
        if self.dedup.historical_lookback_days < 0:
            raise ValueError("NEWS_ISSUE_DEDUP_HISTORICAL_LOOKBACK_DAYS must be >= 0.")
        if self.ingest.candidates_file is not None and self.ingest.rss_feeds:
            raise ValueError(
                "Set either NEWS_ISSUE_CANDIDATES_FILE or NEWS_ISSUE_RSS_FEEDS, not both.",
            )
        if self.scoring.lookback_hours <= 0:
            raise ValueError("NEWS_ISSUE_SCORING_LOOKBACK_HOURS must be > 0.")
        for name, value in (
            ("NEWS_ISSUE_TITLE_BATCH_SIZE", self.generation.title_batch_size),
            ("NEWS_ISSUE_BODY_BATCH_SIZE", self.generation.body_batch_size),
            ("NEWS_ISSUE_BODY_BATCHES", self.generation.body_batches),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be a positive integer.")
        if not 0 <= self.generation.min_fact_check_score <= MAX_FACT_CHECK_SCORE:
            raise ValueError(
                f"NEWS_ISSUE_MIN_FACT_CHECK_SCORE must be within [0, {MAX_FACT_CHECK_SCORE}].",
            )

    def validate_for_llm(self) -> None:
        """Raise configuration error if the LLM backend cannot be built."""

        if self.llm.backend not in LLM_BACKENDS:
            raise ValueError(
                f"NEWS_ISSUE_LLM_BACKEND must be one of {', '.join(LLM_BACKENDS)}: "
                f"{self.llm.backend!r}",
            )
        if self.llm.backend == "cli" and "{prompt" not in self.llm.command_template:
            raise ValueError(
                "NEWS_ISSUE_LLM_COMMAND_TEMPLATE must include {prompt} or {prompt_file} "
                "for the cli backend.",
            )
        if self.llm.backend == "http" and not self.llm.base_url.startswith(("http://", "https://")):
            raise ValueError(f"NEWS_ISSUE_LLM_BASE_URL must be http(s): {self.llm.base_url!r}")
        if self.llm.timeout_seconds <= 0:
            raise ValueError("NEWS_ISSUE_LLM_TIMEOUT_SECONDS must be > 0.")

from __future__ import annotations

from pathlib import Path

import allure
import pytest

from news_issue.config import (
    DedupSettings,
    GenerationSettings,
    IngestSettings,
    LlmSettings,
    PipelineSettings,
    Settings,
)

pytestmark = [
    allure.epic("Issue Assembly"),
    allure.feature("Configuration"),
]


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "NEWS_ISSUE_DB_PATH",
        "NEWS_ISSUE_MAX_RETRIES",
        "NEWS_ISSUE_CANDIDATES_FILE",
        "NEWS_ISSUE_RSS_FEEDS",
        "NEWS_ISSUE_ALLOCATION_RANDOM_SEED",
        "NEWS_ISSUE_MIN_FACT_CHECK_SCORE",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.db_path == Path(".news_issue.db")
    assert settings.pipeline.max_retries == 2
    assert settings.dedup.strictness_threshold == pytest.approx(0.80)
    assert settings.allocation.random_seed is None
    assert settings.generation.min_fact_check_score == 12
    assert settings.ingest.candidates_file is None
    assert settings.ingest.rss_feeds == ()
    settings.validate()


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("NEWS_ISSUE_DB_PATH", str(tmp_path / "custom.db"))
    monkeypatch.setenv("NEWS_ISSUE_MAX_RETRIES", "5")
    monkeypatch.setenv("NEWS_ISSUE_RETRY_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("NEWS_ISSUE_DEDUP_STRICTNESS_THRESHOLD", "0.7")
    monkeypatch.setenv("NEWS_ISSUE_BODY_BATCHES", "3")
    monkeypatch.setenv("NEWS_ISSUE_ALLOCATION_RANDOM_SEED", "42")
    monkeypatch.setenv("NEWS_ISSUE_RSS_FEEDS", "https://a.example/feed, ,https://b.example/rss")
    monkeypatch.setenv("NEWS_ISSUE_DEFAULT_MODULE", "news")
    monkeypatch.setenv("NEWS_ISSUE_LLM_BACKEND", " CLI ")

    settings = Settings.from_env()

    assert settings.db_path == tmp_path / "custom.db"
    assert settings.pipeline.max_retries == 5
    assert settings.pipeline.retry_delay_seconds == pytest.approx(0.5)
    assert settings.dedup.strictness_threshold == pytest.approx(0.7)
    assert settings.generation.body_batches == 3
    assert settings.allocation.random_seed == 42
    assert settings.ingest.rss_feeds == ("https://a.example/feed", "https://b.example/rss")
    assert settings.ingest.default_module_id == "news"
    assert settings.llm.backend == "cli"


def test_explicit_db_path_wins_over_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("NEWS_ISSUE_DB_PATH", str(tmp_path / "env.db"))

    assert Settings.from_env(db_path=tmp_path / "cli.db").db_path == tmp_path / "cli.db"


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(pipeline=PipelineSettings(max_retries=-1)), "MAX_RETRIES"),
        (Settings(pipeline=PipelineSettings(candidates_per_slot=0)), "CANDIDATES_PER_SLOT"),
        (Settings(dedup=DedupSettings(strictness_threshold=1.5)), "STRICTNESS_THRESHOLD"),
        (Settings(generation=GenerationSettings(body_batches=0)), "BODY_BATCHES"),
        (
            Settings(generation=GenerationSettings(min_fact_check_score=31)),
            "MIN_FACT_CHECK_SCORE",
        ),
        (
            Settings(
                ingest=IngestSettings(
                    candidates_file=Path("candidates.json"),
                    rss_feeds=("https://example.com/feed",),
                ),
            ),
            "not both",
        ),
    ],
)
def test_validate_rejects_out_of_range_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()


def test_validate_for_llm_requires_prompt_placeholder_for_cli() -> None:
    settings = Settings(llm=LlmSettings(backend="cli", command_template="agent --run"))

    with pytest.raises(ValueError, match="COMMAND_TEMPLATE"):
        settings.validate_for_llm()

    Settings(
        llm=LlmSettings(backend="cli", command_template="agent {prompt_file}"),
    ).validate_for_llm()


def test_validate_for_llm_rejects_unknown_backend_and_bad_url() -> None:
    with pytest.raises(ValueError, match="NEWS_ISSUE_LLM_BACKEND"):
        Settings(llm=LlmSettings(backend="smoke")).validate_for_llm()
    with pytest.raises(ValueError, match="BASE_URL"):
        Settings(llm=LlmSettings(base_url="ftp://llm.example.com")).validate_for_llm()

from __future__ import annotations

from datetime import date

import allure
import pytest

from news_issue.config import GenerationSettings
from news_issue.errors import FatalStepError
from news_issue.generation.generator import ContentGenerator, build_content_id
from news_issue.llm.base import LlmCallError
from news_issue.models import CriterionScore, GenerationFailure, ScoreRecord

pytestmark = [
    allure.epic("Issue Assembly"),
    allure.feature("Content Generation"),
]


@pytest.fixture()
def issue_with_candidates(repository, make_candidate, make_article_module):
    repository.upsert_module(make_article_module(count=2))
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    scores = {"a": 9, "b": 8, "c": 7, "d": 6, "e": 5}
    for candidate_id, score in scores.items():
        repository.upsert_candidate(make_candidate(candidate_id))
        repository.save_score(
            ScoreRecord(
                candidate_id=candidate_id,
                module_id="news",
                criteria=[CriterionScore(number=1, name="Relevance", raw_score=score, weight=1.0)],
                total_score=float(score),
            ),
        )
    repository.assign_candidates(
        issue_id=issue.issue_id,
        module_id="news",
        candidate_ids=list(scores),
    )
    return issue


def _generator(repository, llm, **settings) -> ContentGenerator:
    return ContentGenerator(
        repository=repository,
        llm=llm,
        generation_settings=GenerationSettings(**settings),
        sleep=lambda _seconds: None,
    )


def test_titles_are_generated_for_top_candidates_once(
    repository,
    fake_llm,
    issue_with_candidates,
) -> None:
    generator = _generator(repository, fake_llm)

    first = generator.generate_titles(issue_id=issue_with_candidates.issue_id, module_id="news")
    second = generator.generate_titles(issue_id=issue_with_candidates.issue_id, module_id="news")

    assert (first.generated, first.skipped) == (4, 0)
    assert (second.generated, second.skipped) == (0, 4)
    assert len(fake_llm.calls_for("title")) == 4
    units = repository.list_content(issue_with_candidates.issue_id, module_id="news")
    assert {unit.candidate_id for unit in units} == {"a", "b", "c", "d"}


def test_refused_title_excludes_only_that_candidate(
    repository,
    llm_factory,
    issue_with_candidates,
) -> None:
    def title(prompt: str) -> str:
        if "Story b" in prompt:
            return "I'm sorry, but I cannot write that."
        return "Headline: A fine headline"

    llm = llm_factory({"title": title})

    summary = _generator(repository, llm).generate_titles(
        issue_id=issue_with_candidates.issue_id,
        module_id="news",
    )

    assert summary.generated == 3
    assert [(failure.candidate_id, failure.stage) for failure in summary.failures] == [
        ("b", "title"),
    ]
    headlines = {
        unit.headline for unit in repository.list_content(issue_with_candidates.issue_id)
    }
    assert headlines == {"A fine headline"}


def test_all_transient_failures_raise_for_step_retry(
    repository,
    fake_llm,
    issue_with_candidates,
) -> None:
    fake_llm.fail("title", *[LlmCallError("rate limited", transient=True) for _ in range(4)])

    with pytest.raises(LlmCallError):
        _generator(repository, fake_llm).generate_titles(
            issue_id=issue_with_candidates.issue_id,
            module_id="news",
        )


def test_body_windows_cover_all_units_and_are_idempotent(
    repository,
    fake_llm,
    issue_with_candidates,
) -> None:
    generator = _generator(repository, fake_llm, body_batch_size=3, body_batches=2)
    issue_id = issue_with_candidates.issue_id
    generator.generate_titles(issue_id=issue_id, module_id="news")

    first = generator.generate_bodies(issue_id=issue_id, module_id="news", batch_index=0)
    second = generator.generate_bodies(issue_id=issue_id, module_id="news", batch_index=1)
    rerun = generator.generate_bodies(issue_id=issue_id, module_id="news", batch_index=0)

    assert (first.generated, second.generated) == (3, 1)
    assert (rerun.generated, rerun.skipped) == (0, 3)
    units = repository.list_content(issue_id, module_id="news")
    assert all(unit.body == "A short body about the story." for unit in units)
    assert all(unit.word_count == 6 for unit in units)


def test_titles_are_capped_so_every_body_window_stays_bounded(
    repository,
    fake_llm,
    make_article_module,
    issue_with_candidates,
) -> None:
    repository.upsert_module(make_article_module(count=5))
    generator = _generator(repository, fake_llm, body_batch_size=2, body_batches=2)
    issue_id = issue_with_candidates.issue_id

    titles = generator.generate_titles(issue_id=issue_id, module_id="news")
    windows = [
        generator.generate_bodies(issue_id=issue_id, module_id="news", batch_index=index)
        for index in range(2)
    ]

    assert titles.generated == 4
    assert [window.generated for window in windows] == [2, 2]
    assert all(unit.has_body for unit in repository.list_content(issue_id, module_id="news"))


def test_titles_without_scored_candidates_are_fatal(
    repository,
    fake_llm,
    make_article_module,
) -> None:
    repository.upsert_module(make_article_module())
    issue = repository.create_issue(issue_date=date(2026, 10, 15))

    with pytest.raises(FatalStepError, match="No scored candidates"):
        _generator(repository, fake_llm).generate_titles(
            issue_id=issue.issue_id,
            module_id="news",
        )


def test_plain_text_body_is_accepted_when_not_json(
    repository,
    llm_factory,
    issue_with_candidates,
) -> None:
    llm = llm_factory({"body": "Just prose without any JSON."})
    generator = _generator(repository, llm, body_batch_size=10, body_batches=1)
    issue_id = issue_with_candidates.issue_id
    generator.generate_titles(issue_id=issue_id, module_id="news")

    generator.generate_bodies(issue_id=issue_id, module_id="news", batch_index=0)

    bodies = {unit.body for unit in repository.list_content(issue_id)}
    assert bodies == {"Just prose without any JSON."}


def test_fact_check_failure_scores_zero_with_details(
    repository,
    llm_factory,
    issue_with_candidates,
) -> None:
    llm = llm_factory({"fact_check": "not json at all"})
    generator = _generator(repository, llm, body_batch_size=10, body_batches=1)
    issue_id = issue_with_candidates.issue_id
    generator.generate_titles(issue_id=issue_id, module_id="news")
    generator.generate_bodies(issue_id=issue_id, module_id="news", batch_index=0)

    summary = generator.fact_check(issue_id=issue_id, module_id="news")

    assert summary.generated == 4
    for unit in repository.list_content(issue_id):
        assert unit.fact_check_score == 0
        assert unit.fact_check_details.startswith("Fact-check failed:")


def test_generate_runs_all_stages_for_one_candidate(
    repository,
    fake_llm,
    issue_with_candidates,
) -> None:
    result = _generator(repository, fake_llm).generate("a", "news")

    assert not isinstance(result, GenerationFailure)
    assert result.content_id == build_content_id(issue_with_candidates.issue_id, "news", "a")
    assert result.has_body
    assert result.fact_check_score == 25


def test_generate_reports_failure_for_unassigned_candidate(
    repository,
    fake_llm,
    make_candidate,
) -> None:
    repository.upsert_candidate(make_candidate("loose"))

    result = _generator(repository, fake_llm).generate("loose", "news")

    assert isinstance(result, GenerationFailure)
    assert result.stage == "lookup"

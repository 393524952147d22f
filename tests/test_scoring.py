from __future__ import annotations

from datetime import UTC, date, datetime

import allure
import pytest

from news_issue.config import PipelineSettings, ScoringSettings
from news_issue.errors import FatalStepError, ScoringError
from news_issue.llm.base import LlmCallError
from news_issue.models import CriterionConfig
from news_issue.scoring.assignment import CandidateAssignmentService, rank_candidates
from news_issue.scoring.engine import (
    LlmCriterionEvaluator,
    ScoringEngine,
    validate_criteria,
)
from news_issue.scoring.service import ScoringStageService

pytestmark = [
    allure.epic("Issue Assembly"),
    allure.feature("Scoring"),
]

NOW = datetime(2026, 10, 15, 6, 0, tzinfo=UTC)


class FixedEvaluator:
    def __init__(self, scores: dict[int, int], failing: set[str] | None = None) -> None:
        self.scores = scores
        self.failing = failing or set()

    def evaluate(self, candidate, criterion: CriterionConfig) -> tuple[int, str]:
        if candidate.candidate_id in self.failing:
            raise LlmCallError("backend unavailable", transient=True)
        return self.scores[criterion.number], f"criterion {criterion.number}"


def test_total_score_is_weighted_sum_of_enabled_criteria(make_candidate) -> None:
    criteria = [
        CriterionConfig(number=1, name="Relevance", weight=2.0),
        CriterionConfig(number=2, name="Novelty", weight=0.5),
        CriterionConfig(number=3, name="Disabled", weight=10.0, enabled=False),
    ]
    engine = ScoringEngine(evaluator=FixedEvaluator({1: 8, 2: 6, 3: 10}))

    record = engine.score(make_candidate("a"), criteria, module_id="news")

    assert record.total_score == pytest.approx(8 * 2.0 + 6 * 0.5)
    assert [item.number for item in record.criteria] == [1, 2]


@pytest.mark.parametrize("count", [0, 6])
def test_criteria_count_must_be_between_one_and_five(count: int) -> None:
    criteria = [CriterionConfig(number=index, name=f"c{index}") for index in range(1, count + 1)]

    with pytest.raises(ValueError):
        validate_criteria(criteria)


def test_out_of_range_raw_score_raises_scoring_error(make_candidate) -> None:
    engine = ScoringEngine(evaluator=FixedEvaluator({1: 11}))

    with pytest.raises(ScoringError):
        engine.score(make_candidate("a"), [CriterionConfig(number=1, name="x")], module_id="news")


def test_llm_evaluator_parses_fenced_json(make_candidate, llm_factory) -> None:
    llm = llm_factory({"score": 'Sure:\n```json\n{"score": 9, "reason": "timely"}\n```'})
    evaluator = LlmCriterionEvaluator(llm=llm)

    raw, reason = evaluator.evaluate(make_candidate("a"), CriterionConfig(number=1, name="x"))

    assert (raw, reason) == (9, "timely")


def test_scoring_service_defers_failures_and_skips_scored(
    repository,
    make_candidate,
    make_article_module,
) -> None:
    repository.upsert_module(make_article_module())
    for candidate_id in ("a", "b", "c"):
        repository.upsert_candidate(make_candidate(candidate_id))
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    service = ScoringStageService(
        repository=repository,
        engine=ScoringEngine(evaluator=FixedEvaluator({1: 7, 2: 4}, failing={"b"})),
        scoring_settings=ScoringSettings(),
        now=lambda: NOW,
    )

    first = service.run(issue_id=issue.issue_id)
    second = service.run(issue_id=issue.issue_id)

    assert (first.scored, first.deferred, first.skipped) == (2, 1, 0)
    assert (second.scored, second.deferred, second.skipped) == (0, 1, 2)
    assert repository.get_candidate("a").total_score == pytest.approx(7 + 4 * 0.5)
    assert repository.get_candidate("b").total_score is None


def test_scoring_service_rejects_misconfigured_module(
    repository,
    make_article_module,
) -> None:
    criteria = [CriterionConfig(number=index, name=f"c{index}") for index in range(1, 7)]
    repository.upsert_module(make_article_module(criteria=criteria))
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    service = ScoringStageService(
        repository=repository,
        engine=ScoringEngine(evaluator=FixedEvaluator({})),
        scoring_settings=ScoringSettings(),
        now=lambda: NOW,
    )

    with pytest.raises(FatalStepError):
        service.run(issue_id=issue.issue_id)


def test_scoring_service_raises_when_backend_is_down_for_every_candidate(
    repository,
    make_candidate,
    make_article_module,
) -> None:
    repository.upsert_module(make_article_module())
    for candidate_id in ("a", "b"):
        repository.upsert_candidate(make_candidate(candidate_id))
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    service = ScoringStageService(
        repository=repository,
        engine=ScoringEngine(evaluator=FixedEvaluator({1: 7, 2: 4}, failing={"a", "b"})),
        scoring_settings=ScoringSettings(),
        now=lambda: NOW,
    )

    with pytest.raises(LlmCallError, match="backend unavailable"):
        service.run(issue_id=issue.issue_id)


def test_scoring_service_defers_non_transient_failures_without_raising(
    repository,
    make_candidate,
    make_article_module,
) -> None:
    repository.upsert_module(make_article_module())
    repository.upsert_candidate(make_candidate("a"))
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    service = ScoringStageService(
        repository=repository,
        engine=ScoringEngine(evaluator=FixedEvaluator({1: 42, 2: 4})),
        scoring_settings=ScoringSettings(),
        now=lambda: NOW,
    )

    summary = service.run(issue_id=issue.issue_id)

    assert (summary.scored, summary.deferred) == (0, 1)


def test_rank_candidates_orders_by_score_then_publication(make_candidate) -> None:
    early = datetime(2026, 10, 14, 6, 0, tzinfo=UTC)
    late = datetime(2026, 10, 14, 9, 0, tzinfo=UTC)
    ranked = rank_candidates(
        [
            make_candidate("late", total_score=5.0, published_at=late),
            make_candidate("early", total_score=5.0, published_at=early),
            make_candidate("top", total_score=9.0, published_at=late),
        ],
    )

    assert [candidate.candidate_id for candidate in ranked] == ["top", "early", "late"]


def test_assignment_takes_top_scored_pool_candidates_respecting_minimums(
    repository,
    make_candidate,
    make_article_module,
) -> None:
    criteria = [
        CriterionConfig(number=1, name="Relevance", weight=1.0, minimum_score=5),
        CriterionConfig(number=2, name="Novelty", weight=1.0),
    ]
    repository.upsert_module(make_article_module(count=1, criteria=criteria))
    scores = {"a": (9, 9), "b": (4, 10), "c": (6, 1), "d": (5, 5), "e": (8, 0), "f": (7, 7)}
    for candidate_id in scores:
        repository.upsert_candidate(make_candidate(candidate_id))

    class PerCandidateEvaluator:
        def evaluate(self, candidate, criterion):
            return scores[candidate.candidate_id][criterion.number - 1], ""

    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    ScoringStageService(
        repository=repository,
        engine=ScoringEngine(evaluator=PerCandidateEvaluator()),
        scoring_settings=ScoringSettings(),
        now=lambda: NOW,
    ).run(issue_id=issue.issue_id)
    service = CandidateAssignmentService(
        repository=repository,
        pipeline_settings=PipelineSettings(candidates_per_slot=4),
        scoring_settings=ScoringSettings(),
        now=lambda: NOW,
    )

    assigned = service.run(issue_id=issue.issue_id)
    again = service.run(issue_id=issue.issue_id)

    assert assigned == {"news": 4}
    assert again == {"news": 0}
    chosen = {
        candidate.candidate_id for candidate in repository.list_issue_candidates(issue.issue_id)
    }
    assert chosen == {"a", "f", "d", "e"}

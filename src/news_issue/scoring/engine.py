"""Weighted criteria scoring of a single candidate."""

from __future__ import annotations

import logging
from typing import Protocol

from news_issue.errors import ScoringError
from news_issue.llm.base import LlmCallError, LlmClient
from news_issue.llm.parsing import extract_json_object
from news_issue.llm.prompts import CRITERION_SCORE_PROMPT
from news_issue.models import CandidateItem, CriterionConfig, CriterionScore, ScoreRecord

logger = logging.getLogger(__name__)

MAX_CRITERIA = 5
MIN_RAW_SCORE = 0
MAX_RAW_SCORE = 10


class CriterionEvaluator(Protocol):
    """Produces a raw 0-10 score and rationale for one criterion."""

    def evaluate(self, candidate: CandidateItem, criterion: CriterionConfig) -> tuple[int, str]:
        """Score ``candidate`` against ``criterion``."""


class LlmCriterionEvaluator:
    """Asks the LLM for a JSON ``{"score", "reason"}`` verdict."""

    def __init__(self, *, llm: LlmClient, content_chars: int = 4_000) -> None:
        self.llm = llm
        self.content_chars = content_chars

    def evaluate(self, candidate: CandidateItem, criterion: CriterionConfig) -> tuple[int, str]:
        prompt = CRITERION_SCORE_PROMPT.format(
            criterion_name=criterion.name,
            criterion_prompt=criterion.prompt,
            title=candidate.title,
            description=candidate.description,
            content=(candidate.full_text or candidate.description)[: self.content_chars],
        )
        payload = extract_json_object(self.llm.complete(prompt, task="score"))
        return _coerce_raw_score(payload.get("score")), str(payload.get("reason", ""))


def validate_criteria(criteria: list[CriterionConfig]) -> list[CriterionConfig]:
    """Return enabled criteria ordered by number, raising ValueError when unusable."""

    enabled = sorted(
        (criterion for criterion in criteria if criterion.enabled),
        key=lambda item: item.number,
    )
    if not enabled:
        raise ValueError("At least one enabled scoring criterion is required.")
    if len(enabled) > MAX_CRITERIA:
        raise ValueError(f"At most {MAX_CRITERIA} enabled scoring criteria are supported.")
    numbers = [criterion.number for criterion in enabled]
    if len(set(numbers)) != len(numbers):
        raise ValueError(f"Criterion numbers must be unique: {numbers}")
    return enabled


class ScoringEngine:
    """Computes ``total = sum(raw_i * weight_i)`` over enabled criteria."""

    def __init__(self, *, evaluator: CriterionEvaluator) -> None:
        self.evaluator = evaluator

    def score(
        self,
        candidate: CandidateItem,
        criteria: list[CriterionConfig],
        *,
        module_id: str,
    ) -> ScoreRecord:
        enabled = validate_criteria(criteria)
        scores: list[CriterionScore] = []
        for criterion in enabled:
            try:
                raw_score, rationale = self.evaluator.evaluate(candidate, criterion)
            except (LlmCallError, ValueError, KeyError, TypeError) as error:
                raise ScoringError(candidate.candidate_id, str(error)) from error
            if not MIN_RAW_SCORE <= raw_score <= MAX_RAW_SCORE:
                raise ScoringError(
                    candidate.candidate_id,
                    f"criterion {criterion.number} score {raw_score} outside "
                    f"{MIN_RAW_SCORE}..{MAX_RAW_SCORE}",
                )
            scores.append(
                CriterionScore(
                    number=criterion.number,
                    name=criterion.name,
                    raw_score=raw_score,
                    weight=criterion.weight,
                    rationale=rationale,
                ),
            )

        return ScoreRecord(
            candidate_id=candidate.candidate_id,
            module_id=module_id,
            criteria=scores,
            total_score=sum(item.weighted for item in scores),
        )


def _coerce_raw_score(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        raise ValueError(f"Score must be a number, got {value!r}")
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"Score must be an integer, got {value!r}")
    return int(number)

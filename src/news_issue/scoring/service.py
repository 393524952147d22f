"""Scoring stage service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from news_issue.config import ScoringSettings
from news_issue.errors import FatalStepError, ScoringError
from news_issue.llm.base import LlmCallError
from news_issue.models import CandidateItem, ModuleConfig, ModuleKind, ScoringSummary
from news_issue.repository import IssueRepository
from news_issue.scoring.engine import ScoringEngine, validate_criteria
from news_issue.storage.common import utc_now

logger = logging.getLogger(__name__)


class ScoringStageService:
    """Scores unscored candidates of every active article module."""

    def __init__(
        self,
        *,
        repository: IssueRepository,
        engine: ScoringEngine,
        scoring_settings: ScoringSettings,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.engine = engine
        self.scoring_settings = scoring_settings
        self.now = now

    def run(self, *, issue_id: str) -> ScoringSummary:
        """Score every unscored candidate; per-item failures are deferred.

        When no candidate has a score and every attempt failed with a transient
        LLM error, the last error is raised for step retry.
        """

        self.repository.require_issue(issue_id)
        summary = ScoringSummary()
        transient_errors: list[LlmCallError] = []
        for module in article_modules(self.repository):
            try:
                validate_criteria(module.criteria)
            except ValueError as error:
                raise FatalStepError(f"Module {module.module_id}: {error}") from error

            for candidate in self._candidates_for(issue_id, module):
                if candidate.total_score is not None:
                    summary.skipped += 1
                    continue
                try:
                    record = self.engine.score(
                        candidate,
                        module.criteria,
                        module_id=module.module_id,
                    )
                except ScoringError as error:
                    logger.warning("Deferring candidate %s: %s", candidate.candidate_id, error)
                    summary.deferred += 1
                    if isinstance(error.__cause__, LlmCallError) and error.__cause__.transient:
                        transient_errors.append(error.__cause__)
                    continue
                self.repository.save_score(record)
                summary.scored += 1

        if _backend_down(summary, transient_errors):
            raise transient_errors[-1]
        logger.info(
            "Scoring finished for issue %s: scored=%d deferred=%d skipped=%d",
            issue_id,
            summary.scored,
            summary.deferred,
            summary.skipped,
        )
        return summary

    def _candidates_for(self, issue_id: str, module: ModuleConfig) -> list[CandidateItem]:
        since = self.now() - timedelta(
            hours=module.lookback_hours or self.scoring_settings.lookback_hours,
        )
        pool = self.repository.list_pool_candidates(module_id=module.module_id, since=since)
        assigned = self.repository.list_issue_candidates(issue_id, module_id=module.module_id)
        return [*assigned, *pool]


def article_modules(repository: IssueRepository) -> list[ModuleConfig]:
    """Active article modules in display order."""

    return [module for module in repository.list_modules() if module.kind is ModuleKind.ARTICLE]


def _backend_down(summary: ScoringSummary, transient_errors: list[LlmCallError]) -> bool:
    return (
        summary.scored == 0
        and summary.skipped == 0
        and bool(transient_errors)
        and len(transient_errors) == summary.deferred
    )

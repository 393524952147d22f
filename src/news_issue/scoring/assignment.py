"""Assignment of top-scored pool candidates to an issue."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from news_issue.config import PipelineSettings, ScoringSettings
from news_issue.models import CandidateItem, ModuleConfig
from news_issue.repository import IssueRepository
from news_issue.scoring.service import article_modules
from news_issue.storage.common import utc_now

logger = logging.getLogger(__name__)


class CandidateAssignmentService:
    """Moves the best unassigned candidates of each article module into the issue.

    Each module receives ``count * candidates_per_slot`` candidates so later
    deduplication and per-item generation failures still leave enough material.
    """

    def __init__(
        self,
        *,
        repository: IssueRepository,
        pipeline_settings: PipelineSettings,
        scoring_settings: ScoringSettings,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.pipeline_settings = pipeline_settings
        self.scoring_settings = scoring_settings
        self.now = now

    def run(self, *, issue_id: str) -> dict[str, int]:
        self.repository.require_issue(issue_id)
        assigned: dict[str, int] = {}
        for module in article_modules(self.repository):
            assigned[module.module_id] = self._assign_module(issue_id, module)
        return assigned

    def _assign_module(self, issue_id: str, module: ModuleConfig) -> int:
        target = module.count * self.pipeline_settings.candidates_per_slot
        already = len(self.repository.list_issue_candidates(issue_id, module_id=module.module_id))
        missing = target - already
        if missing <= 0:
            return 0

        since = self.now() - timedelta(
            hours=module.lookback_hours or self.scoring_settings.lookback_hours,
        )
        pool = self.repository.list_pool_candidates(module_id=module.module_id, since=since)
        eligible = [
            candidate
            for candidate in pool
            if candidate.total_score is not None and self._meets_minimums(candidate, module)
        ]
        chosen = rank_candidates(eligible)[:missing]
        count = self.repository.assign_candidates(
            issue_id=issue_id,
            module_id=module.module_id,
            candidate_ids=[candidate.candidate_id for candidate in chosen],
        )
        logger.info(
            "Assigned %d candidates to module %s (%d filtered by minimum scores)",
            count,
            module.name,
            len(pool) - len(eligible),
        )
        return count

    def _meets_minimums(self, candidate: CandidateItem, module: ModuleConfig) -> bool:
        minimums = {
            criterion.number: criterion.minimum_score
            for criterion in module.enabled_criteria
            if criterion.minimum_score is not None
        }
        if not minimums:
            return True
        record = self.repository.get_score(candidate.candidate_id, module.module_id)
        if record is None:
            return False
        raw_by_number = {item.number: item.raw_score for item in record.criteria}
        return all(
            raw_by_number.get(number, 0) >= minimum for number, minimum in minimums.items()
        )


def rank_candidates(candidates: list[CandidateItem]) -> list[CandidateItem]:
    """Order by total score descending, then earliest publication, then id."""

    return sorted(
        candidates,
        key=lambda item: (-(item.total_score or 0.0), item.published_at, item.candidate_id),
    )

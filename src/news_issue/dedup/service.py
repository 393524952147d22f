"""Deduplication stage service."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta

from news_issue.config import DedupSettings
from news_issue.dedup.embedder import Embedder, build_embedder
from news_issue.dedup.engine import DuplicateDetector, count_duplicates
from news_issue.models import DedupSummary
from news_issue.repository import IssueRepository

logger = logging.getLogger(__name__)


class DedupStageService:
    """Runs duplicate detection for an issue and replaces its persisted groups."""

    def __init__(
        self,
        *,
        repository: IssueRepository,
        dedup_settings: DedupSettings,
        embedder: Embedder | None = None,
    ) -> None:
        self.repository = repository
        self.dedup_settings = dedup_settings
        self._embedder = embedder

    def run(self, *, issue_id: str) -> DedupSummary:
        issue = self.repository.require_issue(issue_id)
        candidates = self.repository.list_issue_candidates(issue_id)
        published_hashes = self.repository.list_published_hashes(
            since=issue.issue_date - timedelta(days=self.dedup_settings.historical_lookback_days),
            until=issue.issue_date,
            exclude_issue_id=issue_id,
        )

        detector = DuplicateDetector(
            strictness_threshold=self.dedup_settings.strictness_threshold,
            semantic_threshold=self.dedup_settings.semantic_threshold,
            embedder=self._resolve_embedder() if len(candidates) > 1 else None,
        )
        groups = detector.detect(
            issue_id=issue_id,
            candidates=candidates,
            published_hashes=published_hashes,
        )
        self.repository.replace_duplicate_groups(issue_id=issue_id, groups=groups)

        method_counts = Counter(group.detection_method.value for group in groups)
        summary = DedupSummary(
            group_count=len(groups),
            duplicate_count=count_duplicates(groups),
            method_counts=dict(sorted(method_counts.items())),
        )
        logger.info(
            "Dedup finished for issue %s: candidates=%d groups=%d duplicates=%d methods=%s",
            issue_id,
            len(candidates),
            summary.group_count,
            summary.duplicate_count,
            summary.method_counts,
        )
        return summary

    def _resolve_embedder(self) -> Embedder:
        if self._embedder is None:
            self._embedder = build_embedder(self.dedup_settings.model_name)
        return self._embedder

"""Pool ingestion from a candidate source."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from news_issue.ingestion.sources import CandidateSource
from news_issue.repository import IssueRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestSummary:
    source: str | None = None
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    unrouted: int = 0

    def as_dict(self) -> dict[str, object]:
        return {
            "source": self.source,
            "fetched": self.fetched,
            "inserted": self.inserted,
            "updated": self.updated,
            "unrouted": self.unrouted,
        }


class IngestionService:
    """Upserts source candidates into the unassigned pool."""

    def __init__(
        self,
        *,
        repository: IssueRepository,
        source: CandidateSource | None = None,
        default_module_id: str | None = None,
    ) -> None:
        self.repository = repository
        self.source = source
        self.default_module_id = default_module_id

    def run(self, *, issue_id: str | None = None) -> IngestSummary:
        if issue_id is not None:
            self.repository.require_issue(issue_id)
        if self.source is None:
            logger.info("No candidate source configured; ingest skipped")
            return IngestSummary()
        return self.import_from(self.source)

    def import_from(self, source: CandidateSource) -> IngestSummary:
        summary = IngestSummary(source=source.name)
        for candidate in source.fetch():
            summary.fetched += 1
            candidate.module_id = candidate.module_id or self.default_module_id
            if candidate.module_id is None:
                summary.unrouted += 1
            if self.repository.upsert_candidate(candidate):
                summary.inserted += 1
            else:
                summary.updated += 1
        logger.info(
            "Ingested from %s: fetched=%d inserted=%d updated=%d unrouted=%d",
            summary.source,
            summary.fetched,
            summary.inserted,
            summary.updated,
            summary.unrouted,
        )
        return summary

"""Operator-driven issue lifecycle after the draft is assembled."""

from __future__ import annotations

import logging
from datetime import datetime

from news_issue.allocation.service import AllocationStageService
from news_issue.models import Issue, IssueStatus
from news_issue.notify import Notifier, safe_notify
from news_issue.repository import IssueRepository
from news_issue.storage.common import utc_now

logger = logging.getLogger(__name__)


class IssueLifecycleService:
    def __init__(
        self,
        *,
        repository: IssueRepository,
        allocation: AllocationStageService,
        notifier: Notifier | None = None,
    ) -> None:
        self.repository = repository
        self.allocation = allocation
        self.notifier = notifier

    def submit_for_review(self, issue_id: str) -> Issue:
        issue = self.repository.set_issue_status(issue_id, IssueStatus.IN_REVIEW)
        safe_notify(self.notifier, "issue_in_review", {"issue_id": issue_id})
        return issue

    def return_to_draft(self, issue_id: str) -> Issue:
        return self.repository.set_issue_status(issue_id, IssueStatus.DRAFT)

    def mark_sent(self, issue_id: str, *, sent_at: datetime | None = None) -> Issue:
        """Close the issue and stamp usage of every allocated non-article item."""

        issue = self.repository.set_issue_status(issue_id, IssueStatus.SENT)
        recorded = self.allocation.record_usage(issue_id=issue_id, used_at=sent_at or utc_now())
        logger.info("Issue %s sent; recorded usage for %d assets", issue_id, recorded)
        safe_notify(
            self.notifier,
            "issue_sent",
            {"issue_id": issue_id, "subject_line": issue.subject_line},
        )
        return issue

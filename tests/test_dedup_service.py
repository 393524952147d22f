from __future__ import annotations

from datetime import date

import allure

from news_issue.config import DedupSettings
from news_issue.dedup.embedder import HashingEmbedder
from news_issue.dedup.service import DedupStageService
from news_issue.generation.generator import build_content_id
from news_issue.models import DetectionMethod, GeneratedContent, IssueStatus

pytestmark = [
    allure.epic("Issue Assembly"),
    allure.feature("Deduplication"),
]


def _service(repository) -> DedupStageService:
    return DedupStageService(
        repository=repository,
        dedup_settings=DedupSettings(),
        embedder=HashingEmbedder(),
    )


def _assign(repository, issue_id: str, candidates, module_id: str = "news") -> None:
    for candidate in candidates:
        repository.upsert_candidate(candidate)
    repository.assign_candidates(
        issue_id=issue_id,
        module_id=module_id,
        candidate_ids=[candidate.candidate_id for candidate in candidates],
    )


def _send_issue_with(repository, issue_id: str, candidate_id: str) -> None:
    repository.insert_content(
        GeneratedContent(
            content_id=build_content_id(issue_id, "news", candidate_id),
            issue_id=issue_id,
            module_id="news",
            candidate_id=candidate_id,
            headline="Published headline",
            body="Published body.",
            is_active=True,
        ),
    )
    for status in (IssueStatus.DRAFT, IssueStatus.IN_REVIEW, IssueStatus.SENT):
        repository.set_issue_status(issue_id, status)


def test_dedup_marks_suppressed_candidates_and_is_idempotent(repository, make_candidate) -> None:
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    _assign(
        repository,
        issue.issue_id,
        [
            make_candidate("a", title="Rocket lands safely after orbital test flight"),
            make_candidate("b", title="Rocket lands safely after orbital test flight today"),
            make_candidate("c", title="Farmers report record harvest of apples"),
        ],
    )
    service = _service(repository)

    first = service.run(issue_id=issue.issue_id)
    groups_after_first = repository.list_duplicate_groups(issue.issue_id)
    second = service.run(issue_id=issue.issue_id)
    groups_after_second = repository.list_duplicate_groups(issue.issue_id)

    assert first == second
    assert first.group_count == 1
    assert first.method_counts == {DetectionMethod.TITLE_SIMILARITY.value: 1}
    assert [group.group_id for group in groups_after_first] == [
        group.group_id for group in groups_after_second
    ]
    suppressed = {
        candidate.candidate_id
        for candidate in repository.list_issue_candidates(issue.issue_id)
        if candidate.suppressed
    }
    assert suppressed == {"b"}


def test_dedup_suppresses_candidates_published_in_recent_sent_issue(
    repository,
    make_candidate,
) -> None:
    sent = repository.create_issue(issue_date=date(2026, 10, 13))
    _assign(repository, sent.issue_id, [make_candidate("old", full_text="Same story body.")])
    _send_issue_with(repository, sent.issue_id, "old")

    current = repository.create_issue(issue_date=date(2026, 10, 15))
    _assign(
        repository,
        current.issue_id,
        [
            make_candidate("new", title="Another angle", full_text="Same story body."),
            make_candidate("fresh", title="Unrelated news", full_text="Different body."),
        ],
    )

    summary = _service(repository).run(issue_id=current.issue_id)
    groups = repository.list_duplicate_groups(current.issue_id)

    assert summary.method_counts == {DetectionMethod.HISTORICAL_MATCH.value: 1}
    assert groups[0].canonical_id == "old"
    assert groups[0].suppressed_ids == ["new"]


def test_sent_issue_outside_lookback_window_is_ignored(repository, make_candidate) -> None:
    sent = repository.create_issue(issue_date=date(2026, 10, 1))
    _assign(repository, sent.issue_id, [make_candidate("old", full_text="Same story body.")])
    _send_issue_with(repository, sent.issue_id, "old")

    current = repository.create_issue(issue_date=date(2026, 10, 15))
    _assign(
        repository,
        current.issue_id,
        [make_candidate("new", title="Another angle", full_text="Same story body.")],
    )

    summary = _service(repository).run(issue_id=current.issue_id)

    assert summary.group_count == 0

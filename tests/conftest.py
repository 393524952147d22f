"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime

import pytest

from news_issue.models import (
    CandidateItem,
    CriterionConfig,
    ModuleConfig,
    ModuleKind,
    SelectionMode,
)
from news_issue.repository import IssueRepository

Response = str | Callable[[str], str]

DEFAULT_RESPONSES: dict[str, Response] = {
    "score": '{"score": 7, "reason": "relevant"}',
    "title": "Generated headline",
    "body": '{"headline": "Generated headline", "content": "A short body about the story."}',
    "fact_check": '{"score": 25, "details": "accurate"}',
    "subject_line": "Big news this week",
}


class FakeLlm:
    """Scripted LLM: canned responses per task and queued failures."""

    def __init__(self, responses: dict[str, Response] | None = None) -> None:
        self.responses = {**DEFAULT_RESPONSES, **(responses or {})}
        self.failures: dict[str, list[Exception]] = {}
        self.calls: list[tuple[str, str]] = []

    def fail(self, task: str, *errors: Exception) -> None:
        self.failures.setdefault(task, []).extend(errors)

    def complete(self, prompt: str, *, task: str) -> str:
        self.calls.append((task, prompt))
        queued = self.failures.get(task)
        if queued:
            raise queued.pop(0)
        response = self.responses[task]
        return response(prompt) if callable(response) else response

    def calls_for(self, task: str) -> list[str]:
        return [prompt for called_task, prompt in self.calls if called_task == task]


@pytest.fixture()
def fake_llm() -> FakeLlm:
    return FakeLlm()


@pytest.fixture()
def repository(tmp_path) -> Iterator[IssueRepository]:
    repo = IssueRepository(tmp_path / "issue.db")
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


def _make_candidate(  # noqa: PLR0913
    candidate_id: str,
    *,
    title: str | None = None,
    full_text: str | None = None,
    description: str = "",
    module_id: str | None = "news",
    category: str | None = None,
    published_at: datetime | None = None,
    total_score: float | None = None,
    issue_id: str | None = None,
) -> CandidateItem:
    return CandidateItem(
        candidate_id=candidate_id,
        source_name="example.com",
        source_url=f"https://example.com/{candidate_id}",
        title=title or f"Story {candidate_id}",
        published_at=published_at or datetime(2026, 10, 14, 8, 0, tzinfo=UTC),
        description=description,
        full_text=full_text if full_text is not None else f"Full text of story {candidate_id}.",
        category=category,
        module_id=module_id,
        total_score=total_score,
        issue_id=issue_id,
    )


def _article_module(  # noqa: PLR0913
    module_id: str = "news",
    *,
    count: int = 2,
    display_order: int = 0,
    max_per_category: int | None = None,
    selection_mode: SelectionMode = SelectionMode.AFFILIATE_PRIORITY,
    criteria: list[CriterionConfig] | None = None,
) -> ModuleConfig:
    return ModuleConfig(
        module_id=module_id,
        name=module_id.title(),
        kind=ModuleKind.ARTICLE,
        count=count,
        selection_mode=selection_mode,
        max_per_category=max_per_category,
        display_order=display_order,
        lookback_hours=24 * 365,
        criteria=criteria
        or [
            CriterionConfig(number=1, name="Relevance", weight=1.0),
            CriterionConfig(number=2, name="Novelty", weight=0.5),
        ],
    )


@pytest.fixture()
def make_candidate() -> Callable[..., CandidateItem]:
    return _make_candidate


@pytest.fixture()
def make_article_module() -> Callable[..., ModuleConfig]:
    return _article_module


@pytest.fixture()
def llm_factory() -> Callable[..., FakeLlm]:
    return FakeLlm

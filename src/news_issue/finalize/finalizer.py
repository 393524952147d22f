"""Final ranking, subject line and release of unused candidates."""

from __future__ import annotations

import logging
from typing import Protocol

from news_issue.errors import FatalStepError
from news_issue.llm.base import LlmCallError, LlmClient
from news_issue.llm.parsing import clean_headline, detect_refusal
from news_issue.llm.prompts import SUBJECT_LINE_PROMPT
from news_issue.models import (
    FinalizeSummary,
    GeneratedContent,
    IssueStatus,
    ModuleKind,
    assert_transition,
)
from news_issue.repository import IssueRepository

logger = logging.getLogger(__name__)

SUBJECT_LINE_MAX_CHARS = 80


class SubjectLineWriter(Protocol):
    def write(self, unit: GeneratedContent) -> str:
        """Return a subject line for an issue led by ``unit``."""


class LlmSubjectLineWriter:
    """Asks the LLM for a short subject line based on the lead article."""

    def __init__(self, *, llm: LlmClient, max_chars: int = SUBJECT_LINE_MAX_CHARS) -> None:
        self.llm = llm
        self.max_chars = max_chars

    def write(self, unit: GeneratedContent) -> str:
        raw = self.llm.complete(
            SUBJECT_LINE_PROMPT.format(
                max_chars=self.max_chars,
                headline=unit.headline,
                body=unit.body[:2_000],
            ),
            task="subject_line",
        )
        if detect_refusal(raw) is not None:
            raise ValueError("refusal instead of subject line")
        subject = clean_headline(raw)
        if not subject:
            raise ValueError("empty subject line")
        return subject[: self.max_chars]


class Finalizer:
    """Turns allocations into the ranked, reviewable draft of an issue."""

    def __init__(
        self,
        *,
        repository: IssueRepository,
        subject_writer: SubjectLineWriter | None = None,
    ) -> None:
        self.repository = repository
        self.subject_writer = subject_writer

    def finalize(self, *, issue_id: str) -> FinalizeSummary:
        issue = self.repository.require_issue(issue_id)
        assert_transition(issue.status, IssueStatus.DRAFT)
        modules = self.repository.list_modules()
        if not modules:
            raise FatalStepError("No active modules configured.")

        summary = FinalizeSummary(subject_line=None, active_units=0, released=0)
        lead_unit: GeneratedContent | None = None
        active_candidates: set[str] = set()
        for module in modules:
            if module.kind is not ModuleKind.ARTICLE:
                continue
            ranked = self._rank_module(issue_id, module.module_id)
            summary.modules[module.module_id] = [unit.content_id for unit in ranked]
            summary.active_units += len(ranked)
            active_candidates.update(unit.candidate_id for unit in ranked)
            if lead_unit is None and ranked:
                lead_unit = ranked[0]

        summary.subject_line = self._subject_line(lead_unit)
        self.repository.set_subject_line(issue_id, summary.subject_line)

        unused = [
            candidate.candidate_id
            for candidate in self.repository.list_issue_candidates(issue_id)
            if candidate.candidate_id not in active_candidates
        ]
        summary.released = self.repository.release_candidates(
            issue_id=issue_id,
            candidate_ids=unused,
        )
        self.repository.set_issue_status(issue_id, IssueStatus.DRAFT)
        logger.info(
            "Finalized issue %s: active_units=%d released=%d subject=%r",
            issue_id,
            summary.active_units,
            summary.released,
            summary.subject_line,
        )
        return summary

    def reorder(self, *, issue_id: str, module_id: str, content_ids: list[str]) -> None:
        """Record an operator ordering; units not listed keep allocation order after them."""

        units = {
            unit.content_id: unit
            for unit in self.repository.list_content(issue_id, module_id=module_id)
        }
        unknown = [content_id for content_id in content_ids if content_id not in units]
        if unknown:
            raise ValueError(f"Unknown content units for {module_id}: {', '.join(unknown)}")
        positions = {content_id: index for index, content_id in enumerate(content_ids, start=1)}
        for content_id, unit in units.items():
            unit.manual_order = positions.get(content_id)
            self.repository.update_content(unit)

    def set_skipped(self, *, content_id: str, skipped: bool) -> GeneratedContent:
        unit = self.repository.get_content(content_id)
        if unit is None:
            raise ValueError(f"Content unit not found: {content_id}")
        unit.skipped = skipped
        if skipped:
            unit.is_active = False
        self.repository.update_content(unit)
        return unit

    def _rank_module(self, issue_id: str, module_id: str) -> list[GeneratedContent]:
        allocation = self.repository.get_allocation(issue_id, module_id)
        order = allocation.item_ids if allocation is not None else []
        units = self.repository.list_content(issue_id, module_id=module_id)
        by_id = {unit.content_id: unit for unit in units}

        selected = [
            by_id[content_id]
            for content_id in order
            if content_id in by_id and not by_id[content_id].skipped
        ]
        allocation_index = {unit.content_id: index for index, unit in enumerate(selected)}
        selected.sort(
            key=lambda unit: (
                unit.manual_order is None,
                unit.manual_order or 0,
                allocation_index[unit.content_id],
            ),
        )

        selected_ids = {unit.content_id for unit in selected}
        for rank, unit in enumerate(selected, start=1):
            unit.rank = rank
            unit.final_position = rank
            unit.is_active = True
            self.repository.update_content(unit)
        for unit in units:
            if unit.content_id in selected_ids:
                continue
            unit.rank = None
            unit.final_position = None
            unit.is_active = False
            self.repository.update_content(unit)
        return selected

    def _subject_line(self, lead_unit: GeneratedContent | None) -> str | None:
        if lead_unit is None:
            return None
        if self.subject_writer is None:
            return lead_unit.headline
        try:
            return self.subject_writer.write(lead_unit)
        except (LlmCallError, ValueError) as error:
            logger.warning("Subject line generation failed, using headline: %s", error)
            return lead_unit.headline

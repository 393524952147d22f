"""Title, body and fact-check generation for article modules."""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable

from news_issue.config import MAX_FACT_CHECK_SCORE, GenerationSettings
from news_issue.errors import FatalStepError, GenerationError
from news_issue.llm.base import LlmCallError, LlmClient
from news_issue.llm.parsing import clean_headline, detect_refusal, extract_json_object
from news_issue.llm.prompts import BODY_PROMPT, FACT_CHECK_PROMPT, TITLE_PROMPT
from news_issue.models import (
    CandidateItem,
    GeneratedContent,
    GenerationFailure,
    GenerationSummary,
    ModuleConfig,
    ModuleKind,
)
from news_issue.repository import IssueRepository
from news_issue.scoring.assignment import rank_candidates
from news_issue.text import word_count

logger = logging.getLogger(__name__)

TITLES_PER_SLOT = 2
_SOURCE_CHARS = 6_000


class ContentGenerator:
    """Produces finished content units from assigned candidates.

    Every stage operation is idempotent: existing titles, bodies and fact-check
    scores are never regenerated. A failure for one candidate excludes only that
    candidate, unless every call in the operation failed transiently, in which
    case the last error is raised so the step can be retried.
    """

    def __init__(
        self,
        *,
        repository: IssueRepository,
        llm: LlmClient,
        generation_settings: GenerationSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repository = repository
        self.llm = llm
        self.settings = generation_settings
        self.sleep = sleep

    def generate_titles(self, *, issue_id: str, module_id: str) -> GenerationSummary:
        module = self._article_module(module_id)
        eligible = [
            candidate
            for candidate in self.repository.list_issue_candidates(issue_id, module_id=module_id)
            if not candidate.suppressed
            and candidate.total_score is not None
            and candidate.full_text.strip()
        ]
        targets = rank_candidates(eligible)[: self.title_capacity(module)]
        if not targets:
            raise FatalStepError(f"No scored candidates to generate from for module {module_id}")
        existing = {
            unit.candidate_id
            for unit in self.repository.list_content(issue_id, module_id=module_id)
        }

        summary = GenerationSummary()
        pending = [candidate for candidate in targets if candidate.candidate_id not in existing]
        summary.skipped = len(targets) - len(pending)
        transient_errors: list[LlmCallError] = []
        for batch_index, batch in enumerate(_batches(pending, self.settings.title_batch_size)):
            if batch_index and self.settings.batch_delay_seconds:
                self.sleep(self.settings.batch_delay_seconds)
            for candidate in batch:
                try:
                    headline = self._write_title(candidate)
                except (GenerationError, LlmCallError) as error:
                    _record_failure(summary, candidate.candidate_id, module_id, "title", error)
                    _collect_transient(transient_errors, error)
                    continue
                self.repository.insert_content(
                    GeneratedContent(
                        content_id=build_content_id(issue_id, module_id, candidate.candidate_id),
                        issue_id=issue_id,
                        module_id=module_id,
                        candidate_id=candidate.candidate_id,
                        headline=headline,
                    ),
                )
                summary.generated += 1

        _raise_if_all_transient(summary, transient_errors)
        return summary

    def generate_bodies(
        self,
        *,
        issue_id: str,
        module_id: str,
        batch_index: int,
    ) -> GenerationSummary:
        """Write bodies for one window of the module's units.

        Windows are fixed slices of ``body_batch_size`` units ordered by candidate id.
        Units beyond ``body_batches * body_batch_size`` never receive a body.
        """

        self._article_module(module_id)
        if not 0 <= batch_index < self.settings.body_batches:
            raise FatalStepError(
                f"Body batch {batch_index} outside 0..{self.settings.body_batches - 1}",
            )
        units = self.repository.list_content(issue_id, module_id=module_id)
        start = batch_index * self.settings.body_batch_size
        window = units[start : start + self.settings.body_batch_size]

        summary = GenerationSummary()
        transient_errors: list[LlmCallError] = []
        for unit in window:
            if unit.has_body:
                summary.skipped += 1
                continue
            candidate = self.repository.get_candidate(unit.candidate_id)
            if candidate is None:
                _record_failure(summary, unit.candidate_id, module_id, "body", "candidate missing")
                continue
            try:
                self._write_body(unit, candidate)
            except (GenerationError, LlmCallError) as error:
                _record_failure(summary, unit.candidate_id, module_id, "body", error)
                _collect_transient(transient_errors, error)
                continue
            self.repository.update_content(unit)
            summary.generated += 1

        _raise_if_all_transient(summary, transient_errors)
        return summary

    def fact_check(self, *, issue_id: str, module_id: str) -> GenerationSummary:
        self._article_module(module_id)
        summary = GenerationSummary()
        for unit in self.repository.list_content(issue_id, module_id=module_id):
            if not unit.has_body or unit.fact_check_score is not None:
                summary.skipped += 1
                continue
            candidate = self.repository.get_candidate(unit.candidate_id)
            self._check_facts(unit, candidate)
            self.repository.update_content(unit)
            summary.generated += 1
        return summary

    def generate(self, candidate_id: str, module_id: str) -> GeneratedContent | GenerationFailure:
        """Run title, body and fact-check for one assigned candidate."""

        candidate = self.repository.get_candidate(candidate_id)
        if candidate is None or candidate.issue_id is None:
            return GenerationFailure(
                candidate_id=candidate_id,
                module_id=module_id,
                stage="lookup",
                reason="candidate is not assigned to an issue",
            )
        issue_id = candidate.issue_id
        content_id = build_content_id(issue_id, module_id, candidate_id)
        unit = self.repository.get_content(content_id)
        try:
            if unit is None:
                unit = GeneratedContent(
                    content_id=content_id,
                    issue_id=issue_id,
                    module_id=module_id,
                    candidate_id=candidate_id,
                    headline=self._write_title(candidate),
                )
                self.repository.insert_content(unit)
            if not unit.has_body:
                self._write_body(unit, candidate)
                self.repository.update_content(unit)
        except (GenerationError, LlmCallError) as error:
            logger.warning("Generation failed for candidate %s: %s", candidate_id, error)
            return GenerationFailure(
                candidate_id=candidate_id,
                module_id=module_id,
                stage=getattr(error, "stage", "llm"),
                reason=str(error),
            )
        if unit.fact_check_score is None:
            self._check_facts(unit, candidate)
            self.repository.update_content(unit)
        return unit

    def title_capacity(self, module: ModuleConfig) -> int:
        """Titles written per module, bounded by what the body windows can cover."""

        body_capacity = self.settings.body_batches * self.settings.body_batch_size
        return min(module.count * TITLES_PER_SLOT, body_capacity)

    def _article_module(self, module_id: str) -> ModuleConfig:
        module = self.repository.get_module(module_id)
        if module is None:
            raise FatalStepError(f"Module not found: {module_id}")
        if module.kind is not ModuleKind.ARTICLE:
            raise FatalStepError(f"Module {module_id} is not an article module")
        return module

    def _write_title(self, candidate: CandidateItem) -> str:
        raw = self.llm.complete(
            TITLE_PROMPT.format(title=candidate.title, content=_source_text(candidate)),
            task="title",
        )
        refusal = detect_refusal(raw)
        if refusal is not None:
            raise GenerationError("title", f"refusal detected ({refusal!r})")
        headline = clean_headline(raw)
        if not headline:
            raise GenerationError("title", "empty headline")
        return headline

    def _write_body(self, unit: GeneratedContent, candidate: CandidateItem) -> None:
        raw = self.llm.complete(
            BODY_PROMPT.format(
                headline=unit.headline,
                title=candidate.title,
                content=_source_text(candidate),
            ),
            task="body",
        )
        try:
            payload = extract_json_object(raw)
            body = str(payload.get("content") or payload.get("body") or "").strip()
        except ValueError:
            body = raw.strip()
        if not body:
            raise GenerationError("body", "empty body")
        refusal = detect_refusal(body)
        if refusal is not None:
            raise GenerationError("body", f"refusal detected ({refusal!r})")
        unit.body = body
        unit.word_count = word_count(body)

    def _check_facts(self, unit: GeneratedContent, candidate: CandidateItem | None) -> None:
        source = _source_text(candidate) if candidate is not None else ""
        try:
            payload = extract_json_object(
                self.llm.complete(
                    FACT_CHECK_PROMPT.format(
                        headline=unit.headline,
                        body=unit.body,
                        content=source,
                    ),
                    task="fact_check",
                ),
            )
            score = int(payload["score"])
            if not 0 <= score <= MAX_FACT_CHECK_SCORE:
                raise ValueError(f"score {score} outside 0..{MAX_FACT_CHECK_SCORE}")
            unit.fact_check_score = score
            unit.fact_check_details = str(payload.get("details", ""))
        except (LlmCallError, ValueError, KeyError, TypeError) as error:
            logger.warning("Fact-check failed for unit %s: %s", unit.content_id, error)
            unit.fact_check_score = 0
            unit.fact_check_details = f"Fact-check failed: {error}"


def build_content_id(issue_id: str, module_id: str, candidate_id: str) -> str:
    joined = f"{issue_id}|{module_id}|{candidate_id}"
    digest = hashlib.sha1(joined.encode("utf-8"), usedforsecurity=False).hexdigest()  # noqa: S324
    return f"content:{digest}"


def _source_text(candidate: CandidateItem) -> str:
    return (candidate.full_text or candidate.description or candidate.title)[:_SOURCE_CHARS]


def _batches(items: list[CandidateItem], size: int) -> list[list[CandidateItem]]:
    return [items[index : index + size] for index in range(0, len(items), size)]


def _record_failure(
    summary: GenerationSummary,
    candidate_id: str,
    module_id: str,
    stage: str,
    error: Exception | str,
) -> None:
    logger.warning(
        "Excluding candidate %s from module %s (%s): %s",
        candidate_id,
        module_id,
        stage,
        error,
    )
    summary.failures.append(
        GenerationFailure(
            candidate_id=candidate_id,
            module_id=module_id,
            stage=stage,
            reason=str(error),
        ),
    )


def _collect_transient(errors: list[LlmCallError], error: Exception) -> None:
    if isinstance(error, LlmCallError) and error.transient:
        errors.append(error)


def _raise_if_all_transient(summary: GenerationSummary, errors: list[LlmCallError]) -> None:
    if summary.generated == 0 and errors and len(errors) == len(summary.failures):
        raise errors[-1]

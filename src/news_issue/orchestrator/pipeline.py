"""Fixed-sequence issue pipeline with per-step retry and failure recording."""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from news_issue.allocation.service import AllocationStageService
from news_issue.config import Settings
from news_issue.dedup.embedder import Embedder
from news_issue.dedup.service import DedupStageService
from news_issue.finalize.finalizer import Finalizer, LlmSubjectLineWriter
from news_issue.generation.generator import ContentGenerator
from news_issue.ingestion.service import IngestionService
from news_issue.ingestion.sources import CandidateSource, build_source
from news_issue.llm.base import LlmClient
from news_issue.llm.factory import build_llm_client
from news_issue.models import (
    IssueStatus,
    PipelineResult,
    StepAttempt,
    StepResult,
    StepStatus,
)
from news_issue.notify import Notifier, safe_notify
from news_issue.orchestrator.retry import RetryPolicy, with_retry
from news_issue.repository import IssueRepository
from news_issue.scoring.assignment import CandidateAssignmentService
from news_issue.scoring.engine import LlmCriterionEvaluator, ScoringEngine
from news_issue.scoring.service import ScoringStageService, article_modules
from news_issue.storage.common import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineStep:
    name: str
    run: Callable[[], Any]


class IssuePipeline:
    """Runs the assembly steps for one issue strictly in sequence.

    Steps are idempotent, so a rerun after failure (or a retried attempt)
    repeats only the work that has not been persisted yet.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: IssueRepository,
        ingestion: IngestionService,
        scoring: ScoringStageService,
        assignment: CandidateAssignmentService,
        dedup: DedupStageService,
        generator: ContentGenerator,
        allocation: AllocationStageService,
        finalizer: Finalizer,
        retry_policy: RetryPolicy,
        body_batches: int = 2,
        notifier: Notifier | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repository = repository
        self.ingestion = ingestion
        self.scoring = scoring
        self.assignment = assignment
        self.dedup = dedup
        self.generator = generator
        self.allocation = allocation
        self.finalizer = finalizer
        self.retry_policy = retry_policy
        self.body_batches = body_batches
        self.notifier = notifier
        self.sleep = sleep

    def build_steps(self, issue_id: str) -> list[PipelineStep]:
        steps = [
            PipelineStep("ingest", lambda: self.ingestion.run(issue_id=issue_id)),
            PipelineStep("score", lambda: self.scoring.run(issue_id=issue_id)),
            PipelineStep("assign_candidates", lambda: self.assignment.run(issue_id=issue_id)),
            PipelineStep("deduplicate", lambda: self.dedup.run(issue_id=issue_id)),
        ]
        for module in article_modules(self.repository):
            steps.extend(self._module_steps(issue_id, module.module_id))
        steps.extend(
            [
                PipelineStep("allocate", lambda: self.allocation.run(issue_id=issue_id)),
                PipelineStep("finalize", lambda: self.finalizer.finalize(issue_id=issue_id)),
            ],
        )
        return steps

    def run(
        self,
        issue_id: str,
        *,
        step_runner: Callable[[str, PipelineStep], StepResult] | None = None,
    ) -> PipelineResult:
        """Run every step and return the per-step results.

        Step failures are reported in the returned ``PipelineResult``. Problems found
        before the first step are raised instead: ``IssueNotFoundError`` for an
        unknown issue and ``InvalidTransitionError`` for a ``sent`` or ``in_review``
        issue.

        ``step_runner`` lets an outer scheduler (Prefect) wrap each step execution.
        """

        run_step = step_runner or self.run_step

        self.repository.set_issue_status(issue_id, IssueStatus.PROCESSING)
        result = PipelineResult(issue_id=issue_id, success=False)
        logger.info("Pipeline started for issue %s", issue_id)

        for step in self.build_steps(issue_id):
            issue = self.repository.require_issue(issue_id)
            if issue.status is IssueStatus.FAILED:
                logger.warning(
                    "Issue %s was marked failed; stopping before %s",
                    issue_id,
                    step.name,
                )
                return result

            step_result = run_step(issue_id, step)
            result.results.append(step_result)
            if step_result.status is StepStatus.FAILED:
                self.repository.set_issue_status(
                    issue_id,
                    IssueStatus.FAILED,
                    failed_step=step.name,
                    last_error=step_result.error,
                )
                logger.error(
                    "Pipeline for issue %s failed at %s after %d attempts: %s",
                    issue_id,
                    step.name,
                    step_result.attempts,
                    step_result.error,
                )
                safe_notify(
                    self.notifier,
                    "issue_failed",
                    {"issue_id": issue_id, "step": step.name, "error": step_result.error},
                )
                return result

        result.success = True
        logger.info("Pipeline finished for issue %s", issue_id)
        safe_notify(self.notifier, "issue_draft_ready", {"issue_id": issue_id})
        return result

    def run_step(self, issue_id: str, step: PipelineStep) -> StepResult:
        started_at = utc_now()

        def record(attempt_no: int, error: Exception | None) -> None:
            nonlocal started_at
            self.repository.record_step_attempt(
                StepAttempt(
                    issue_id=issue_id,
                    step_name=step.name,
                    attempt_no=attempt_no,
                    status=StepStatus.SUCCESS if error is None else StepStatus.FAILED,
                    error=_error_text(error) if error is not None else None,
                    started_at=started_at,
                    finished_at=utc_now(),
                ),
            )
            started_at = utc_now()

        logger.info("Running step %s for issue %s", step.name, issue_id)
        outcome = with_retry(step.run, self.retry_policy, sleep=self.sleep, on_attempt=record)
        if outcome.error is not None:
            return StepResult(
                step_name=step.name,
                status=StepStatus.FAILED,
                attempts=outcome.attempts,
                error=_error_text(outcome.error),
            )
        return StepResult(
            step_name=step.name,
            status=StepStatus.SUCCESS,
            attempts=outcome.attempts,
            data=step_data(outcome.value),
        )

    def _module_steps(self, issue_id: str, module_id: str) -> list[PipelineStep]:
        steps = [
            PipelineStep(
                f"generate_titles:{module_id}",
                lambda: self.generator.generate_titles(issue_id=issue_id, module_id=module_id),
            ),
        ]
        for batch_index in range(self.body_batches):
            steps.append(
                PipelineStep(
                    f"generate_bodies_{batch_index + 1}:{module_id}",
                    _body_batch(self.generator, issue_id, module_id, batch_index),
                ),
            )
        steps.append(
            PipelineStep(
                f"fact_check:{module_id}",
                lambda: self.generator.fact_check(issue_id=issue_id, module_id=module_id),
            ),
        )
        return steps


def build_pipeline(
    settings: Settings,
    repository: IssueRepository,
    *,
    llm: LlmClient | None = None,
    embedder: Embedder | None = None,
    source: CandidateSource | None = None,
    notifier: Notifier | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> IssuePipeline:
    """Wire stage services from settings."""

    llm = llm or build_llm_client(settings.llm)
    allocation = AllocationStageService(
        repository=repository,
        allocation_settings=settings.allocation,
        generation_settings=settings.generation,
    )
    return IssuePipeline(
        repository=repository,
        ingestion=IngestionService(
            repository=repository,
            source=source or build_source(settings.ingest),
            default_module_id=settings.ingest.default_module_id,
        ),
        scoring=ScoringStageService(
            repository=repository,
            engine=ScoringEngine(evaluator=LlmCriterionEvaluator(llm=llm)),
            scoring_settings=settings.scoring,
        ),
        assignment=CandidateAssignmentService(
            repository=repository,
            pipeline_settings=settings.pipeline,
            scoring_settings=settings.scoring,
        ),
        dedup=DedupStageService(
            repository=repository,
            dedup_settings=settings.dedup,
            embedder=embedder,
        ),
        generator=ContentGenerator(
            repository=repository,
            llm=llm,
            generation_settings=settings.generation,
            sleep=sleep,
        ),
        allocation=allocation,
        finalizer=Finalizer(
            repository=repository,
            subject_writer=LlmSubjectLineWriter(llm=llm),
        ),
        retry_policy=RetryPolicy(
            max_retries=settings.pipeline.max_retries,
            delay_seconds=settings.pipeline.retry_delay_seconds,
        ),
        body_batches=settings.generation.body_batches,
        notifier=notifier,
        sleep=sleep,
    )


def step_data(value: Any) -> dict[str, Any]:
    """Summaries become plain dicts for step results."""

    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    as_dict = getattr(value, "as_dict", None)
    if callable(as_dict):
        return as_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return {"value": value}


def _body_batch(
    generator: ContentGenerator,
    issue_id: str,
    module_id: str,
    batch_index: int,
) -> Callable[[], Any]:
    return lambda: generator.generate_bodies(
        issue_id=issue_id,
        module_id=module_id,
        batch_index=batch_index,
    )


def _error_text(error: Exception) -> str:
    return f"{type(error).__name__}: {error}"
